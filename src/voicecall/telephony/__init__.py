"""
Telephony package: Vapi provider client and webhook relay.

Keep package import side-effects to a minimum to avoid circular imports.
Do not import factory/adapters here.
"""

__all__ = [
    "interface",
    "config",
    "events",
    "factory",
    "vapi_adapter",
]
