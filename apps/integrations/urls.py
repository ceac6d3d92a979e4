"""
Integration app URL configuration.

Webhook endpoints for external service callbacks.
"""
from django.urls import path
from . import views
from .views_payment import StripeWebhookView, FlutterwaveWebhookView

app_name = 'integrations'

urlpatterns = [
    # Identity provider webhooks
    path('identity/', views.identity_webhook, name='identity-webhook'),

    # Payment provider webhooks
    path('stripe/', StripeWebhookView.as_view(), name='stripe-webhook'),
    path('flutterwave/', FlutterwaveWebhookView.as_view(), name='flutterwave-webhook'),
]
