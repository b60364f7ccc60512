"""
API Routes
Project: Billing Backend

Aggregation of the versioned routers.
"""

from billing.api.v1 import api_v1_router

__all__ = ["api_v1_router"]
