from typing import List

import redis
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from standpos.api.deps import get_bus, get_cache_client, get_config, get_lock_service, get_tenant_key
from standpos.data.database import get_db
from standpos.domain.errors import RemoteStoreError, OrderBusyError
from standpos.domain.schemas import Order, OrderDraft, OrdersSnapshot, StatusChange
from standpos.services.lock_service import LockService
from standpos.services.notification_service import NotificationBus
from standpos.services.order_service import OrderSynchronizer
from standpos.utils.settings import SyncConfig

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    cache_client: redis.Redis = Depends(get_cache_client),
    bus: NotificationBus = Depends(get_bus),
    lock_service: LockService = Depends(get_lock_service),
    config: SyncConfig = Depends(get_config),
) -> OrderSynchronizer:
    return OrderSynchronizer(db, cache_client, bus, lock_service=lock_service, config=config)


@router.get("", response_model=OrdersSnapshot)
def list_orders(
    tenant_key: str = Depends(get_tenant_key),
    svc: OrderSynchronizer = Depends(get_service),
):
    """
    Orders newest first. When the store is unreachable the last cached
    snapshot is returned with offline=true.
    """
    return svc.list_orders(tenant_key)


@router.get("/board", response_model=List[Order])
def kitchen_board(
    tenant_key: str = Depends(get_tenant_key),
    svc: OrderSynchronizer = Depends(get_service),
):
    return svc.kitchen_board(tenant_key)


@router.get("/active", response_model=List[Order])
def active_orders(
    tenant_key: str = Depends(get_tenant_key),
    svc: OrderSynchronizer = Depends(get_service),
):
    return svc.active_orders(tenant_key)


@router.get("/search", response_model=List[Order])
def search_orders(
    q: str = Query(..., min_length=1),
    tenant_key: str = Depends(get_tenant_key),
    svc: OrderSynchronizer = Depends(get_service),
):
    return svc.find_order(q, tenant_key)


@router.get("/pending-count")
def pending_count(
    tenant_key: str = Depends(get_tenant_key),
    svc: OrderSynchronizer = Depends(get_service),
):
    return {"count": svc.count_new_orders(tenant_key)}


@router.get("/export.csv")
def export_csv(
    tenant_key: str = Depends(get_tenant_key),
    svc: OrderSynchronizer = Depends(get_service),
):
    return Response(
        content=svc.export_csv(tenant_key),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="pedidos.csv"'},
    )


@router.get("/{order_id}", response_model=Order)
def get_order(
    order_id: str,
    tenant_key: str = Depends(get_tenant_key),
    svc: OrderSynchronizer = Depends(get_service),
):
    order = svc.get_order(order_id, tenant_key)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("", response_model=Order, status_code=201)
def create_order(
    payload: OrderDraft,
    tenant_key: str = Depends(get_tenant_key),
    svc: OrderSynchronizer = Depends(get_service),
):
    """
    Creates the order header and its line items in one transaction.
    The order stays unpaid (INIT) until payment moves it forward.
    """
    try:
        return svc.create_order(payload, tenant_key)
    except RemoteStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/{order_id}/status", response_model=Order)
def change_status(
    order_id: str,
    payload: StatusChange,
    tenant_key: str = Depends(get_tenant_key),
    svc: OrderSynchronizer = Depends(get_service),
):
    """
    Moves an order to a new status.
    DELIVERED needs the customer's confirmation code when the order has one.
    override=true is the back-office correction path.
    """
    try:
        order = svc.change_status(
            order_id,
            payload.status,
            tenant_key,
            confirmation_code=payload.confirmation_code,
            override=payload.override,
        )
    except OrderBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RemoteStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.delete("/{order_id}", status_code=204)
def delete_order(
    order_id: str,
    tenant_key: str = Depends(get_tenant_key),
    svc: OrderSynchronizer = Depends(get_service),
):
    """Removes the order from the local cache only."""
    if not svc.delete_local_order(order_id, tenant_key):
        raise HTTPException(status_code=404, detail="Order not in local cache")
    return Response(status_code=204)
