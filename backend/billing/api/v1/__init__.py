"""
API v1 Routes
Project: Billing Backend

Version 1 of the API.
"""

from fastapi import APIRouter

from billing.api.v1 import customers, dashboard, invoices, products

# Aggregated v1 router
api_v1_router = APIRouter(prefix="/api/v1")

api_v1_router.include_router(customers.router)
api_v1_router.include_router(products.router)
api_v1_router.include_router(invoices.router)
api_v1_router.include_router(dashboard.router)

__all__ = ["api_v1_router"]
