"""Marketplace reviews API package."""

from marketplace.api.routes import product_router, register_review_exception_handlers, review_router

__all__ = ["product_router", "review_router", "register_review_exception_handlers"]
