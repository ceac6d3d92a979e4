"""
URL configuration for the Ledgerly API.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API v1
    path('v1/', include('apps.core.urls')),  # Health check
    path('v1/', include('apps.rbac.urls')),  # Access checks, member modules, audit logs
    path('v1/', include('apps.tenants.urls')),  # Onboarding, enabled modules
    path('v1/webhooks/', include('apps.integrations.urls')),  # Stripe, Flutterwave, identity
]
