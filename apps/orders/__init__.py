"""Stores and payment orders."""
