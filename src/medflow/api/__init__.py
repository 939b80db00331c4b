"""Medflow HTTP API package."""

from medflow.api.routes import cart_router, delivery_router, order_router, payment_router, stock_router

__all__ = ["order_router", "cart_router", "payment_router", "delivery_router", "stock_router"]
