"""
Shared infrastructure: base models, request context, logging,
exceptions and the DRF adapters for the access gate.
"""
