"""
Services for organization resolution and onboarding.
"""
from .tenant_service import TenantService
from .onboarding_service import OnboardingService

__all__ = [
    'TenantService',
    'OnboardingService',
]
