from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from product_api.api.dependencies import get_app_settings, get_product_service
from product_api.config import Settings
from product_api.services.product_service import (
    ProductService,
    MissingFieldsError,
    ProductConflictError,
)
from product_api.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductEnvelope,
    ProductListEnvelope,
    MessageEnvelope,
    Pagination,
)

router = APIRouter(tags=["Products"])

PRODUCT_NOT_FOUND = "Product not found"


@router.get(
    "/product/{identifier}",
    response_model=ProductEnvelope,
    response_model_exclude_none=True,
    summary="Get product by barcode or serial",
    description="Look up a single product whose barcode or serial equals the identifier."
)
def get_product(
    identifier: str,
    service: ProductService = Depends(get_product_service)
):
    product = service.get_by_identifier(identifier)

    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=PRODUCT_NOT_FOUND
        )

    return ProductEnvelope(data=ProductResponse.model_validate(product))


@router.post(
    "/product",
    response_model=ProductEnvelope,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description="Create a new product. Barcode and serial must not be used by another product."
)
def create_product(
    product_data: ProductCreate,
    service: ProductService = Depends(get_product_service)
):
    """
    Create a new product.

    - **barcode**, **serial**, **name**, **price**: required
    - **brand**, **category**, **description**: optional, default to empty
    - **stock**: optional, defaults to 0
    """
    try:
        product = service.create(product_data)
    except MissingFieldsError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except ProductConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )

    return ProductEnvelope(
        message="Product added successfully",
        data=ProductResponse.model_validate(product)
    )


@router.get(
    "/products",
    response_model=ProductListEnvelope,
    response_model_exclude_none=True,
    summary="List products",
    description="Get a paginated list of products, newest first, with optional search."
)
def list_products(
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, description="Items per page"),
    search: str = Query("", description="Case-insensitive match on name, brand, category, barcode or serial"),
    service: ProductService = Depends(get_product_service),
    settings: Settings = Depends(get_app_settings)
):
    """Get paginated list of products."""
    if limit is None:
        limit = settings.DEFAULT_PAGE_SIZE

    products, total, pages, limit = service.get_all(page, limit, search)

    return ProductListEnvelope(
        data=[ProductResponse.model_validate(p) for p in products],
        pagination=Pagination(page=page, limit=limit, total=total, pages=pages)
    )


@router.put(
    "/product/{product_id}",
    response_model=ProductEnvelope,
    response_model_exclude_none=True,
    summary="Update a product",
    description="Update product details. Only provided fields are updated."
)
def update_product(
    product_id: str,
    product_data: ProductUpdate,
    service: ProductService = Depends(get_product_service)
):
    """
    Update a product.

    Partial updates are supported; unknown fields are rejected.
    """
    try:
        product = service.update(product_id, product_data)
    except ProductConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )

    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=PRODUCT_NOT_FOUND
        )

    return ProductEnvelope(
        message="Product updated successfully",
        data=ProductResponse.model_validate(product)
    )


@router.delete(
    "/product/{product_id}",
    response_model=MessageEnvelope,
    summary="Delete a product",
    description="Delete a product by its database identifier."
)
def delete_product(
    product_id: str,
    service: ProductService = Depends(get_product_service)
):
    """Delete a product."""
    deleted = service.delete(product_id)

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=PRODUCT_NOT_FOUND
        )

    return MessageEnvelope(message="Product deleted successfully")
