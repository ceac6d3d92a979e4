"""
Organizations (tenants), session identity resolution and onboarding.
"""
