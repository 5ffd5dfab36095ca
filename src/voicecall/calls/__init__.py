"""
Outbound calls: templates, function registry, orchestration.
"""
