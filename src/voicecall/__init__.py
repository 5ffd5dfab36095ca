"""
voicecall: template-driven outbound AI phone calls through Vapi.

Keep package import side-effects to a minimum; import CallOrchestrator from
voicecall.calls.service.
"""

__version__ = "0.1.0"
