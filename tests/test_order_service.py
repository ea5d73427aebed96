import csv
import io
from decimal import Decimal

import pytest
import redis

from standpos.data.models import OrderModel
from standpos.domain.errors import (
    RemoteStoreError,
    OrderBusyError,
    InvalidTransitionError,
    ConfirmationCodeError,
)
from standpos.domain.schemas import OrderDraft, LineItem
from standpos.domain.status import DomainStatus
from standpos.repos.order_repo import OrderRepo
from standpos.services.cache_store import LocalCacheStore
from standpos.services.lock_service import LockService
from standpos.services.notification_service import ORDERS_UPDATED
from standpos.services.order_service import OrderSynchronizer, CSV_HEADERS
from standpos.utils.settings import SyncConfig

from tests.conftest import TENANT


class FlakyRepo(OrderRepo):
    """OrderRepo that counts writes and can simulate an unreachable store."""

    def __init__(self, db, config):
        super().__init__(db, config)
        self.fail_reads = False
        self.fail_writes = False
        self.fail_code_lookup = False
        self.status_writes = []

    def list_orders(self, tenant_key):
        if self.fail_reads:
            raise RemoteStoreError("list_orders failed: connection refused")
        return super().list_orders(tenant_key)

    def get_order_by_id(self, order_id, tenant_key):
        if self.fail_reads:
            raise RemoteStoreError("get_order_by_id failed: connection refused")
        return super().get_order_by_id(order_id, tenant_key)

    def count_paid_orders(self, tenant_key):
        if self.fail_reads:
            raise RemoteStoreError("count_paid_orders failed: connection refused")
        return super().count_paid_orders(tenant_key)

    def get_confirmation_code(self, order_id, tenant_key):
        if self.fail_code_lookup:
            raise RemoteStoreError("get_confirmation_code failed: timeout")
        return super().get_confirmation_code(order_id, tenant_key)

    def set_status(self, order_id, status, tenant_key):
        self.status_writes.append((order_id, status))
        if self.fail_writes:
            raise RemoteStoreError("set_status failed: connection reset")
        return super().set_status(order_id, status, tenant_key)


@pytest.fixture
def repo(db, config):
    return FlakyRepo(db, config)


@pytest.fixture
def published(bus):
    calls = []
    bus.subscribe(ORDERS_UPDATED, lambda: calls.append(ORDERS_UPDATED))
    return calls


@pytest.fixture
def local_writes(monkeypatch):
    calls = []
    original = LocalCacheStore.apply_status

    def counting(self, order_id, status):
        calls.append((order_id, status))
        return original(self, order_id, status)

    monkeypatch.setattr(LocalCacheStore, "apply_status", counting)
    return calls


@pytest.fixture
def sync(db, redis_client, bus, config, repo):
    return OrderSynchronizer(
        db,
        redis_client,
        bus,
        lock_service=LockService(client=redis_client),
        config=config,
        repo=repo,
    )


def cached(redis_client):
    return LocalCacheStore(TENANT, client=redis_client)


def stored_status(db, order_id):
    db.expire_all()
    return db.get(OrderModel, int(order_id)).status


class TestChangeStatus:
    def test_forward_transition(self, sync, seed, db, redis_client, published):
        oid = str(seed["plain"].id)
        sync.list_orders(TENANT)

        order = sync.change_status(oid, DomainStatus.PREPARING, TENANT)

        assert order.status == DomainStatus.PREPARING
        assert stored_status(db, oid) == "IN_PROGRESS"
        assert cached(redis_client).find_order(oid).status == DomainStatus.PREPARING
        assert published == [ORDERS_UPDATED]

    def test_idempotent_re_read(self, sync, seed):
        oid = str(seed["plain"].id)
        sync.change_status(oid, DomainStatus.PREPARING, TENANT)

        first = sync.get_order(oid, TENANT)
        second = sync.get_order(oid, TENANT)
        assert first == second
        assert first.status == DomainStatus.PREPARING

    def test_unknown_order_returns_none(self, sync, seed, repo, published):
        assert sync.change_status("99999", DomainStatus.PREPARING, TENANT) is None
        assert repo.status_writes == []
        assert published == []

    def test_unpaid_order_is_never_moved(self, sync, seed, db, redis_client, published):
        draft = OrderDraft(
            line_items=[LineItem(product_id=str(seed["tacos"].id), name="Tacos", quantity=1, unit_price=Decimal("45"))],
        )
        order = sync.create_order(draft, TENANT)
        assert stored_status(db, order.id) == "INIT"

        assert sync.change_status(order.id, DomainStatus.PREPARING, TENANT) is None

        assert stored_status(db, order.id) == "INIT"
        assert cached(redis_client).find_order(order.id).status == DomainStatus.NEW
        #only the create was announced
        assert published == [ORDERS_UPDATED]

    def test_remote_miss_does_not_use_stale_cache(self, sync, seed, db, redis_client, repo, published):
        oid = str(seed["plain"].id)
        sync.list_orders(TENANT)
        db.query(OrderModel).filter(OrderModel.id == int(oid)).delete()
        db.commit()

        assert sync.change_status(oid, DomainStatus.PREPARING, TENANT) is None

        assert repo.status_writes == []
        assert cached(redis_client).find_order(oid).status == DomainStatus.NEW
        assert published == []

    def test_invalid_transition_rejected(self, sync, seed, db, repo, published):
        oid = str(seed["plain"].id)

        with pytest.raises(InvalidTransitionError):
            sync.change_status(oid, DomainStatus.EN_ROUTE, TENANT)

        assert repo.status_writes == []
        assert stored_status(db, oid) == "PAYED"
        assert published == []

    def test_override_skips_the_graph(self, sync, seed, db):
        oid = str(seed["booth"].id)

        order = sync.change_status(oid, DomainStatus.NEW, TENANT, override=True)

        assert order.status == DomainStatus.NEW
        assert stored_status(db, oid) == "PAYED"


class TestConfirmationGate:
    def test_wrong_code_means_no_writes(self, sync, seed, db, repo, local_writes, published):
        oid = str(seed["secured"].id)

        with pytest.raises(ConfirmationCodeError):
            sync.change_status(oid, DomainStatus.DELIVERED, TENANT, confirmation_code="0000")

        assert repo.status_writes == []
        assert local_writes == []
        assert published == []
        assert stored_status(db, oid) == "ON_THE_WAY"

    def test_missing_code_rejected(self, sync, seed, repo):
        with pytest.raises(ConfirmationCodeError):
            sync.change_status(str(seed["secured"].id), DomainStatus.DELIVERED, TENANT)
        assert repo.status_writes == []

    def test_code_is_case_sensitive(self, sync, seed, db):
        db.get(OrderModel, seed["secured"].id).confirmation_code = "AbC9"
        db.commit()

        with pytest.raises(ConfirmationCodeError):
            sync.change_status(str(seed["secured"].id), DomainStatus.DELIVERED, TENANT, confirmation_code="abc9")

    def test_right_code_writes_once_each_side(self, sync, seed, db, repo, local_writes, published):
        oid = str(seed["secured"].id)

        order = sync.change_status(oid, DomainStatus.DELIVERED, TENANT, confirmation_code=" 4821 ")

        assert order.status == DomainStatus.DELIVERED
        assert repo.status_writes == [(oid, DomainStatus.DELIVERED)]
        assert local_writes == [(oid, DomainStatus.DELIVERED)]
        assert published == [ORDERS_UPDATED]
        assert stored_status(db, oid) == "DELIVERED"

    def test_code_lookup_failure_blocks_delivery(self, sync, seed, repo):
        repo.fail_code_lookup = True

        with pytest.raises(ConfirmationCodeError):
            sync.change_status(str(seed["secured"].id), DomainStatus.DELIVERED, TENANT, confirmation_code="4821")
        assert repo.status_writes == []

    def test_override_does_not_skip_the_gate(self, sync, seed, repo):
        with pytest.raises(ConfirmationCodeError):
            sync.change_status(str(seed["secured"].id), DomainStatus.DELIVERED, TENANT, override=True)
        assert repo.status_writes == []


class TestFallback:
    def test_remote_write_failure_still_updates_cache_and_raises(self, sync, seed, repo, redis_client, published):
        oid = str(seed["plain"].id)
        sync.list_orders(TENANT)
        repo.fail_writes = True

        with pytest.raises(RemoteStoreError):
            sync.change_status(oid, DomainStatus.PREPARING, TENANT)

        assert cached(redis_client).find_order(oid).status == DomainStatus.PREPARING
        assert published == []

    def test_list_orders_falls_back_to_cache(self, sync, seed, repo):
        fresh = sync.list_orders(TENANT)
        assert fresh.offline is False

        repo.fail_reads = True
        stale = sync.list_orders(TENANT)

        assert stale.offline is True
        assert "connection refused" in stale.error
        assert [o.id for o in stale.orders] == [o.id for o in fresh.orders]

    def test_change_status_resolves_from_cache_when_store_is_down(self, sync, seed, repo, redis_client):
        oid = str(seed["plain"].id)
        sync.list_orders(TENANT)
        repo.fail_reads = True
        repo.fail_writes = True

        with pytest.raises(RemoteStoreError):
            sync.change_status(oid, DomainStatus.PREPARING, TENANT)

        assert repo.status_writes == [(oid, DomainStatus.PREPARING)]
        assert cached(redis_client).find_order(oid).status == DomainStatus.PREPARING

    def test_remote_disabled_uses_cache_only(self, db, redis_client, bus, seed, published):
        config = SyncConfig(use_remote=False, tenant_scope="business")
        repo = FlakyRepo(db, config)
        online = OrderSynchronizer(db, redis_client, bus, config=SyncConfig(use_remote=True, tenant_scope="business"))
        online.list_orders(TENANT)

        offline = OrderSynchronizer(db, redis_client, bus, config=config, repo=repo)
        oid = str(seed["plain"].id)
        order = offline.change_status(oid, DomainStatus.PREPARING, TENANT)

        assert order.status == DomainStatus.PREPARING
        assert repo.status_writes == []
        assert stored_status(db, oid) == "PAYED"
        assert cached(redis_client).find_order(oid).status == DomainStatus.PREPARING
        assert published == [ORDERS_UPDATED]

    def test_pending_count_falls_back_to_cached_new_orders(self, sync, seed, repo):
        assert sync.count_new_orders(TENANT) == 1

        sync.list_orders(TENANT)
        repo.fail_reads = True
        assert sync.count_new_orders(TENANT) == 1


class DownRedis:
    """Every command fails as if the server were unreachable."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise redis.ConnectionError("redis down")
        return fail


class TestOrderLock:
    def test_busy_order_is_rejected(self, sync, seed, redis_client, repo):
        oid = str(seed["plain"].id)
        redis_client.set(f"order:{oid}:lock", "someone-else", ex=10)

        with pytest.raises(OrderBusyError):
            sync.change_status(oid, DomainStatus.PREPARING, TENANT)
        assert repo.status_writes == []

    def test_lock_released_after_mutation(self, sync, seed, redis_client):
        oid = str(seed["plain"].id)

        sync.change_status(oid, DomainStatus.PREPARING, TENANT)
        assert redis_client.get(f"order:{oid}:lock") is None

    def test_lock_released_after_failure(self, sync, seed, redis_client):
        oid = str(seed["plain"].id)

        with pytest.raises(InvalidTransitionError):
            sync.change_status(oid, DomainStatus.DELIVERED, TENANT)
        assert redis_client.get(f"order:{oid}:lock") is None

    def test_redis_outage_degrades_to_unlocked_write(self, db, redis_client, bus, config, repo, seed, published, monkeypatch):
        monkeypatch.setattr(LockService.acquire_order_lock.retry, "sleep", lambda seconds: None)
        monkeypatch.setattr(LockService.release_order_lock.retry, "sleep", lambda seconds: None)
        sync = OrderSynchronizer(
            db,
            redis_client,
            bus,
            lock_service=LockService(client=DownRedis()),
            config=config,
            repo=repo,
        )
        oid = str(seed["plain"].id)

        order = sync.change_status(oid, DomainStatus.PREPARING, TENANT)

        assert order.status == DomainStatus.PREPARING
        assert stored_status(db, oid) == "IN_PROGRESS"
        assert published == [ORDERS_UPDATED]

    def test_failed_release_does_not_hide_the_result(self, sync, seed, db, redis_client, monkeypatch):
        def down(*args, **kwargs):
            raise redis.ConnectionError("redis down")

        monkeypatch.setattr(sync.lock_service, "release_order_lock", down)
        oid = str(seed["plain"].id)

        order = sync.change_status(oid, DomainStatus.PREPARING, TENANT)

        assert order.status == DomainStatus.PREPARING
        assert stored_status(db, oid) == "IN_PROGRESS"
        #left for the TTL to clear
        assert redis_client.ttl(f"order:{oid}:lock") > 0

    def test_release_only_by_holder(self, redis_client):
        locks = LockService(client=redis_client)
        assert locks.acquire_order_lock("5", "a") is True
        assert locks.acquire_order_lock("5", "b") is False
        assert locks.release_order_lock("5", "b") is False
        assert locks.release_order_lock("5", "a") is True

    def test_without_lock_last_write_wins(self, db, redis_client, bus, config, seed):
        oid = str(seed["booth"].id)
        first = OrderSynchronizer(db, redis_client, bus, config=config)
        second = OrderSynchronizer(db, redis_client, bus, config=config)

        first.change_status(oid, DomainStatus.READY, TENANT, override=True)
        second.change_status(oid, DomainStatus.NEW, TENANT, override=True)

        assert stored_status(db, oid) == "PAYED"


class TestQueries:
    def test_kitchen_board_puts_new_first(self, sync, seed):
        board = sync.kitchen_board(TENANT)

        assert [o.id for o in board] == [
            str(seed["plain"].id),
            str(seed["secured"].id),
            str(seed["booth"].id),
        ]

    def test_active_orders_skip_delivered(self, sync, seed):
        sync.change_status(str(seed["secured"].id), DomainStatus.DELIVERED, TENANT, confirmation_code="4821")

        ids = [o.id for o in sync.active_orders(TENANT)]
        assert str(seed["secured"].id) not in ids
        assert len(ids) == 2

    def test_find_order_by_id_and_name(self, sync, seed):
        assert [o.id for o in sync.find_order(str(seed["booth"].id), TENANT)] == [str(seed["booth"].id)]
        assert [o.id for o in sync.find_order("ana", TENANT)] == [str(seed["plain"].id)]
        assert sync.find_order("   ", TENANT) == []

    def test_delete_local_order(self, sync, seed, redis_client, published):
        oid = str(seed["plain"].id)
        sync.list_orders(TENANT)

        assert sync.delete_local_order(oid, TENANT) is True
        assert cached(redis_client).find_order(oid) is None
        assert published == [ORDERS_UPDATED]
        #the remote record stays
        assert sync.get_order(oid, TENANT) is not None

    def test_create_order_publishes_and_mirrors(self, sync, seed, redis_client, published):
        draft = OrderDraft(
            line_items=[LineItem(product_id=str(seed["tacos"].id), name="Tacos", quantity=1, unit_price=Decimal("45"))],
        )

        order = sync.create_order(draft, TENANT)

        assert order.total == Decimal("65")
        assert cached(redis_client).get_current_order().id == order.id
        assert published == [ORDERS_UPDATED]

    def test_export_csv(self, sync, seed):
        rows = list(csv.reader(io.StringIO(sync.export_csv(TENANT))))

        assert rows[0] == CSV_HEADERS
        assert len(rows) == 4
        plain = next(r for r in rows if r[0] == str(seed["plain"].id))
        assert plain[1:] == ["Ana Torres", "135.00", "Nuevo pedido", "Delivery", "10/05/2024", "12:00"]
