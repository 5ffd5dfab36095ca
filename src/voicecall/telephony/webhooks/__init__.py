"""
Telephony webhooks package.

Keep import side-effect free.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from voicecall.telephony.webhooks.relay import WebhookRelay  # noqa: F401
