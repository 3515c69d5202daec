"""Promo code engine for the affiliate portal."""
