from typing import List

import redis
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from standpos.api.deps import get_cache_client, get_config, get_tenant_key
from standpos.data.database import get_db
from standpos.domain.errors import RemoteStoreError
from standpos.domain.schemas import Product, ProductIn, CatalogSummary
from standpos.services.product_service import ProductCatalogService
from standpos.utils.settings import SyncConfig

router = APIRouter(prefix="/products", tags=["products"])


def get_service(
    db: Session = Depends(get_db),
    cache_client: redis.Redis = Depends(get_cache_client),
    config: SyncConfig = Depends(get_config),
) -> ProductCatalogService:
    return ProductCatalogService(db, cache_client, config=config)


@router.get("", response_model=List[Product])
def list_products(
    tenant_key: str = Depends(get_tenant_key),
    svc: ProductCatalogService = Depends(get_service),
):
    return svc.list_products(tenant_key)


@router.get("/summary", response_model=CatalogSummary)
def catalog_summary(
    tenant_key: str = Depends(get_tenant_key),
    svc: ProductCatalogService = Depends(get_service),
):
    """Counts for the inventory screen: total, available and inventory cost."""
    return svc.summary(tenant_key)


@router.post("", response_model=Product, status_code=201)
def create_product(
    payload: ProductIn,
    tenant_key: str = Depends(get_tenant_key),
    svc: ProductCatalogService = Depends(get_service),
):
    try:
        return svc.create_product(payload, tenant_key)
    except RemoteStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/{product_id}", response_model=Product)
def update_product(
    product_id: str,
    payload: ProductIn,
    tenant_key: str = Depends(get_tenant_key),
    svc: ProductCatalogService = Depends(get_service),
):
    try:
        product = svc.update_product(product_id, payload, tenant_key)
    except RemoteStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("/{product_id}/toggle", response_model=Product)
def toggle_product(
    product_id: str,
    tenant_key: str = Depends(get_tenant_key),
    svc: ProductCatalogService = Depends(get_service),
):
    try:
        product = svc.toggle_product(product_id, tenant_key)
    except RemoteStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))

    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.delete("/{product_id}", status_code=204)
def delete_product(
    product_id: str,
    tenant_key: str = Depends(get_tenant_key),
    svc: ProductCatalogService = Depends(get_service),
):
    try:
        deleted = svc.delete_product(product_id, tenant_key)
    except RemoteStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=404, detail="Product not found")
    return Response(status_code=204)
