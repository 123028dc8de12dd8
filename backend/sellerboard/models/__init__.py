"""Aggregate model imports for Alembic auto-detection."""

from sellerboard.models.seller_onboarding import SellerOnboarding  # noqa: F401

__all__ = ["SellerOnboarding"]
