"""
FastAPI router for the Product entity
Project: Billing Backend

Product catalog endpoints.
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.config import settings
from billing.core.database import get_db
from billing.core.deps import get_page_params
from billing.schemas.common import ApiResponse, Page, PageParams, PaginationMeta
from billing.schemas.product import (
    PopularProduct,
    ProductCreate,
    ProductDetail,
    ProductFilters,
    ProductRead,
    ProductUpdate,
)
from billing.services.product_service import ProductService

# Logger for this module
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/products",
    tags=["Products"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_product_service() -> ProductService:
    """Dependency returning a ProductService (overridable in tests)."""
    return ProductService()


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "",
    summary="List products",
    description="Paginated product list filtered by text search, category and price range.",
    response_model=ApiResponse[Page[ProductRead]],
    status_code=status.HTTP_200_OK,
)
async def list_products(
    search: Optional[str] = Query(None, max_length=100, description="Matches name, description or SKU"),
    category: Optional[str] = Query(None, max_length=50),
    min_price: Optional[Decimal] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice", gt=0),
    params: PageParams = Depends(get_page_params),
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[Page[ProductRead]]:
    filters = ProductFilters(
        search=search,
        category=category,
        min_price=min_price,
        max_price=max_price,
    )
    products, total = await service.get_all(db=db, filters=filters, params=params)

    return ApiResponse(
        data=Page(
            items=[ProductRead.model_validate(p) for p in products],
            pagination=PaginationMeta.build(params.page, params.limit, total),
        ),
    )


@router.get(
    "/popular",
    summary="Popular products",
    description="Products ranked by the number of invoice lines referencing them.",
    response_model=ApiResponse[list[PopularProduct]],
    status_code=status.HTTP_200_OK,
)
async def popular_products(
    limit: int = Query(settings.popular_products_limit, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[list[PopularProduct]]:
    ranking = await service.get_popular(db=db, limit=limit)
    return ApiResponse(
        data=[
            PopularProduct(
                id=product.id,
                name=product.name,
                sku=product.sku,
                price=product.price,
                usage_count=usage,
            )
            for product, usage in ranking
        ],
    )


@router.post(
    "",
    summary="Create product",
    response_model=ApiResponse[ProductRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_product(
    product_data: ProductCreate,
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[ProductRead]:
    """
    Raises:
        DuplicateError: the SKU is already in use
    """
    product = await service.create(db=db, product_data=product_data)
    await db.commit()
    return ApiResponse(
        data=ProductRead.model_validate(product),
        message="Product created successfully",
    )


@router.get(
    "/{product_id}",
    summary="Product detail",
    response_model=ApiResponse[ProductDetail],
    status_code=status.HTTP_200_OK,
)
async def get_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[ProductDetail]:
    product, usage = await service.get_detail(db=db, product_id=product_id)
    detail = ProductDetail.model_validate(product).model_copy(update={"usage_count": usage})
    return ApiResponse(data=detail)


@router.put(
    "/{product_id}",
    summary="Update product",
    response_model=ApiResponse[ProductRead],
    status_code=status.HTTP_200_OK,
)
async def update_product(
    product_id: uuid.UUID,
    product_data: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[ProductRead]:
    product = await service.update(db=db, product_id=product_id, product_data=product_data)
    await db.commit()
    return ApiResponse(
        data=ProductRead.model_validate(product),
        message="Product updated successfully",
    )


@router.delete(
    "/{product_id}",
    summary="Delete product",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
)
async def delete_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[None]:
    """
    Raises:
        NotFoundError: the product does not exist
        ConflictError: invoice lines reference the product
    """
    await service.delete(db=db, product_id=product_id)
    await db.commit()
    return ApiResponse(message="Product deleted successfully")
