import redis
from fastapi import APIRouter, Depends

from standpos.api.deps import get_cache_client, get_config, get_tenant_key
from standpos.domain.schemas import KitchenState, KitchenStateIn
from standpos.services.kitchen_service import KitchenStateService
from standpos.utils.settings import SyncConfig

router = APIRouter(prefix="/kitchen", tags=["kitchen"])


def get_service(
    cache_client: redis.Redis = Depends(get_cache_client),
    config: SyncConfig = Depends(get_config),
) -> KitchenStateService:
    return KitchenStateService(cache_client, config=config)


@router.get("", response_model=KitchenState)
def get_kitchen(
    tenant_key: str = Depends(get_tenant_key),
    svc: KitchenStateService = Depends(get_service),
):
    return svc.get_state(tenant_key)


@router.put("", response_model=KitchenState)
def set_kitchen(
    payload: KitchenStateIn,
    tenant_key: str = Depends(get_tenant_key),
    svc: KitchenStateService = Depends(get_service),
):
    """Mode "cerrado" closes the kitchen, every other mode opens it."""
    return svc.set_mode(payload.mode, tenant_key)
