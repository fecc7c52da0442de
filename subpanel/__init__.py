"""Subscription panel payment-gateway layer."""
