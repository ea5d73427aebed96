import redis

from standpos.domain.schemas import KitchenState, BusinessMode
from standpos.services.cache_store import LocalCacheStore
from standpos.utils.settings import SyncConfig
from standpos.utils.logging import get_logger

logger = get_logger(__name__)

CLOSED_MODE = "cerrado"


class KitchenStateService:
    """Kitchen open flag and business opening mode, both kept in the local cache."""

    def __init__(self, cache_client: redis.Redis, config: SyncConfig | None = None):
        self.cache_client = cache_client
        self.config = config or SyncConfig()

    def _cache(self, tenant_key: str | None) -> LocalCacheStore:
        return LocalCacheStore(tenant_key or self.config.default_tenant, client=self.cache_client)

    def get_state(self, tenant_key: str | None) -> KitchenState:
        cache = self._cache(tenant_key)
        mode = cache.get_business_mode()
        is_open = cache.get_kitchen_open() and mode != CLOSED_MODE
        return KitchenState(open=is_open, mode=mode)

    def set_mode(self, mode: BusinessMode, tenant_key: str | None) -> KitchenState:
        cache = self._cache(tenant_key)
        is_open = mode != CLOSED_MODE

        cache.set_business_mode(mode)
        cache.set_kitchen_open(is_open)
        logger.info(f"Business mode for tenant {tenant_key} set to {mode}")
        return KitchenState(open=is_open, mode=mode)
