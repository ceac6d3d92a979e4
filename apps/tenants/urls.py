"""
Organization URL configuration.
"""
from django.urls import path
from apps.tenants import views

urlpatterns = [
    path('organization/onboarding/', views.OnboardingView.as_view(), name='organization-onboarding'),
    path('organization/modules/', views.OrganizationModulesView.as_view(), name='organization-modules'),
]
