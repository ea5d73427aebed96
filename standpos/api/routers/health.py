from fastapi import APIRouter, Depends

from standpos.api.deps import get_monitor
from standpos.domain.schemas import StoreHealth
from standpos.services.store_client import ConnectivityMonitor

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health():
    return {"status": "ok"}


@router.get("/store", response_model=StoreHealth)
def store_health(monitor: ConnectivityMonitor = Depends(get_monitor)):
    """Last result of the background check, "checking" until the first one finishes."""
    return monitor.state
