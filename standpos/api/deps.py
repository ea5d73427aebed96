# standpos/api/deps.py
from functools import lru_cache

import redis
from fastapi import Depends, Query

from standpos.services.lock_service import LockService
from standpos.services.notification_service import NotificationBus
from standpos.services.store_client import StoreClient, ConnectivityMonitor
from standpos.utils.settings import REDIS_URL, SyncConfig
from standpos.utils.tenant import resolve_tenant_key

#one bus per process, every consumer gets the same instance
bus = NotificationBus()


@lru_cache
def get_config() -> SyncConfig:
    return SyncConfig()


def get_bus() -> NotificationBus:
    return bus


@lru_cache
def get_cache_client() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


def get_lock_service(
    client: redis.Redis = Depends(get_cache_client),
    config: SyncConfig = Depends(get_config),
) -> LockService:
    return LockService(client=client, ttl=config.lock_ttl)


@lru_cache
def get_monitor() -> ConnectivityMonitor:
    return ConnectivityMonitor(StoreClient(timeout=get_config().remote_timeout))


def get_tenant_key(
    phone: str | None = Query(None),
    businessId: str | None = Query(None),
    config: SyncConfig = Depends(get_config),
) -> str:
    return resolve_tenant_key(config, phone=phone, business_id=businessId)
