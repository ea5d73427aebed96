import csv
import io
from typing import List
from zoneinfo import ZoneInfo

import redis
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from standpos.domain.errors import (
    RemoteStoreError,
    OrderBusyError,
    InvalidTransitionError,
    ConfirmationCodeError,
)
from standpos.domain.schemas import Order, OrderDraft, OrdersSnapshot
from standpos.domain.status import DomainStatus, STATUS_LABELS, can_transition
from standpos.repos.order_repo import OrderRepo
from standpos.services.cache_store import LocalCacheStore
from standpos.services.lock_service import LockService
from standpos.services.notification_service import NotificationBus, ORDERS_UPDATED
from standpos.utils.settings import SyncConfig
from standpos.utils.logging import get_logger

logger = get_logger(__name__)

CSV_HEADERS = ["ID", "Cliente", "Total", "Estado", "Tipo", "Fecha", "Hora"]


class OrderSynchronizer:
    """
    Order lifecycle orchestration between the remote store and the local cache.
    commands (change_status, create_order, delete_local_order) publish
    pedidosActualizados after a successful mutation
    queries read remote first and fall back to the cached snapshot

    - the remote store is authoritative, the cache is only a shadow copy
    - remote write failures are always propagated, after the cache was updated
    """

    def __init__(
        self,
        db: Session,
        cache_client: redis.Redis,
        bus: NotificationBus,
        lock_service: LockService | None = None,
        config: SyncConfig | None = None,
        repo: OrderRepo | None = None,
    ):
        self.config = config or SyncConfig()
        self.repo = repo or OrderRepo(db, self.config)
        self.cache_client = cache_client
        self.bus = bus
        self.lock_service = lock_service

    def _cache(self, tenant_key: str | None) -> LocalCacheStore:
        return LocalCacheStore(tenant_key or self.config.default_tenant, client=self.cache_client)

    def _remote_enabled(self, tenant_key: str | None) -> bool:
        return self.config.use_remote and bool(tenant_key)

    def _resolve_order(self, order_id: str, tenant_key: str | None) -> Order | None:
        if self._remote_enabled(tenant_key):
            #a remote miss is final, only an unreachable store falls back to the cache
            try:
                return self.repo.get_order_by_id(order_id, tenant_key)
            except RemoteStoreError as e:
                logger.warning(f"Remote lookup of order {order_id} failed, trying local cache: {e}")

        return self._cache(tenant_key).find_order(order_id)

    #commands
    def change_status(
        self,
        order_id: str,
        new_status: DomainStatus,
        tenant_key: str | None,
        confirmation_code: str | None = None,
        override: bool = False,
    ) -> Order | None:
        new_status = DomainStatus(new_status)
        order_id = str(order_id)

        token = self._lock(order_id)
        try:
            return self._change_status(order_id, new_status, tenant_key, confirmation_code, override)
        finally:
            if token is not None:
                self._unlock(order_id, token)

    def _lock(self, order_id: str) -> str | None:
        """
        Token of the held lock, or None when running unlocked.
        With redis down the change still goes through, the store stays authoritative.
        """
        if self.lock_service is None:
            return None

        token = self.lock_service.new_token()
        try:
            locked = self.lock_service.acquire_order_lock(order_id, token, self.config.lock_ttl)
        except RedisError as e:
            logger.warning(f"Order lock unavailable, updating order {order_id} unlocked: {e}")
            return None

        if not locked:
            raise OrderBusyError(f"Order {order_id} is being updated, try again")
        return token

    def _unlock(self, order_id: str, token: str) -> None:
        try:
            self.lock_service.release_order_lock(order_id, token)
        except RedisError as e:
            #the TTL frees it
            logger.warning(f"Could not release lock of order {order_id}: {e}")

    def _change_status(
        self,
        order_id: str,
        new_status: DomainStatus,
        tenant_key: str | None,
        confirmation_code: str | None,
        override: bool,
    ) -> Order | None:
        order = self._resolve_order(order_id, tenant_key)
        if order is None:
            logger.info(f"Order {order_id} not found for tenant {tenant_key}")
            return None

        if not override and not can_transition(order.status, new_status):
            raise InvalidTransitionError(
                f"Order {order_id} cannot go from {order.status.value} to {new_status.value}"
            )

        if new_status == DomainStatus.DELIVERED and order.requires_confirmation:
            self._check_confirmation(order_id, tenant_key, confirmation_code)

        remote_error = None
        if self._remote_enabled(tenant_key):
            try:
                stored = self.repo.set_status(order_id, new_status, tenant_key)
            except RemoteStoreError as e:
                remote_error = e
            else:
                if not stored:
                    #gone or back to unpaid since it was read, nothing was changed
                    logger.warning(f"Order {order_id} no longer matches a paid order, status not changed")
                    return None

        #shadow copy is written even when the remote write failed
        self._cache(tenant_key).apply_status(order_id, new_status)

        if remote_error is not None:
            logger.error(f"Status change of order {order_id} to {new_status.value} not persisted: {remote_error}")
            raise remote_error

        logger.info(f"Order {order_id}: {order.status.value} -> {new_status.value}")
        self.bus.publish(ORDERS_UPDATED)
        return order.model_copy(update={"status": new_status})

    def _check_confirmation(self, order_id: str, tenant_key: str | None, candidate: str | None) -> None:
        if not candidate or not candidate.strip():
            raise ConfirmationCodeError("Confirmation code required to deliver this order")

        if not self._remote_enabled(tenant_key):
            raise ConfirmationCodeError("Confirmation code cannot be verified offline")

        try:
            expected = self.repo.get_confirmation_code(order_id, tenant_key)
        except RemoteStoreError as e:
            logger.error(f"Could not fetch confirmation code of order {order_id}: {e}")
            raise ConfirmationCodeError("Confirmation code could not be verified") from e

        if expected is None or candidate.strip() != expected.strip():
            logger.warning(f"Wrong confirmation code for order {order_id}")
            raise ConfirmationCodeError("Confirmation code does not match")

    def create_order(self, draft: OrderDraft, tenant_key: str | None) -> Order:
        if not self._remote_enabled(tenant_key):
            raise RemoteStoreError("Orders can only be created against the remote store")

        order = self.repo.create_order(draft, tenant_key)
        self._cache(tenant_key).set_current_order(order)
        self.bus.publish(ORDERS_UPDATED)
        return order

    def delete_local_order(self, order_id: str, tenant_key: str | None) -> bool:
        """Back-office delete: the remote record is left untouched."""
        removed = self._cache(tenant_key).remove_order(order_id)
        if removed:
            logger.info(f"Order {order_id} removed from local cache")
            self.bus.publish(ORDERS_UPDATED)
        return removed

    #queries
    def list_orders(self, tenant_key: str | None) -> OrdersSnapshot:
        cache = self._cache(tenant_key)
        if not self._remote_enabled(tenant_key):
            return OrdersSnapshot(orders=cache.get_orders())

        try:
            orders = self.repo.list_orders(tenant_key)
        except RemoteStoreError as e:
            logger.warning(f"Serving cached orders for tenant {tenant_key}: {e}")
            return OrdersSnapshot(orders=cache.get_orders(), offline=True, error=str(e))

        cache.save_orders(orders)
        return OrdersSnapshot(orders=orders)

    def get_order(self, order_id: str, tenant_key: str | None) -> Order | None:
        return self._resolve_order(str(order_id), tenant_key)

    def count_new_orders(self, tenant_key: str | None) -> int:
        if self._remote_enabled(tenant_key):
            try:
                return self.repo.count_paid_orders(tenant_key)
            except RemoteStoreError as e:
                logger.warning(f"Counting cached orders for tenant {tenant_key}: {e}")

        return sum(1 for o in self._cache(tenant_key).get_orders() if o.status == DomainStatus.NEW)

    def active_orders(self, tenant_key: str | None) -> List[Order]:
        return [o for o in self.list_orders(tenant_key).orders if o.status != DomainStatus.DELIVERED]

    def kitchen_board(self, tenant_key: str | None) -> List[Order]:
        #NEW first, otherwise list order is kept
        return sorted(self.active_orders(tenant_key), key=lambda o: o.status != DomainStatus.NEW)

    def find_order(self, query: str, tenant_key: str | None) -> List[Order]:
        """Lookup by exact order id, then by customer name substring."""
        query = (query or "").strip()
        if not query:
            return []

        if query.isdigit():
            order = self.get_order(query, tenant_key)
            if order is not None:
                return [order]

        needle = query.lower()
        return [
            o
            for o in self.list_orders(tenant_key).orders
            if o.id == query or needle in o.customer.display_name.lower()
        ]

    def export_csv(self, tenant_key: str | None) -> str:
        tz = ZoneInfo(self.config.display_timezone)
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(CSV_HEADERS)

        for o in self.list_orders(tenant_key).orders:
            writer.writerow([
                o.id,
                o.customer.display_name,
                f"{o.total:.2f}",
                STATUS_LABELS[o.status],
                o.fulfillment,
                o.created_at.astimezone(tz).strftime("%d/%m/%Y"),
                o.display_time,
            ])

        return buf.getvalue()
