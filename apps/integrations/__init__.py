"""Inbound webhooks from payment and identity providers."""
