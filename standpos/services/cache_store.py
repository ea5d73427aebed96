# standpos/services/cache_store.py
import json
from typing import Any, List, get_args

import redis
from redis.exceptions import RedisError

from standpos.domain.schemas import Order, Product, BusinessMode
from standpos.domain.status import DomainStatus
from standpos.utils.retry import redis_retry
from standpos.utils.settings import REDIS_URL
from standpos.utils.logging import get_logger

logger = get_logger(__name__)

ORDERS_KEY = "pedidos"
CURRENT_ORDER_KEY = "pedidoActual"
PRODUCTS_KEY = "productos"
KITCHEN_OPEN_KEY = "cocinaAbierta"
BUSINESS_MODE_KEY = "estadoNegocio"

DEFAULT_BUSINESS_MODE = "abierto-carro-casa"


class LocalCacheStore:
    """
    Last-known snapshots kept next to the remote store, one namespace per tenant.
    -values are JSON strings under fixed keys
    -reads never raise, a missing or broken key gives the default
    -writes never raise either, a failed write is logged and reported as False
    """

    def __init__(self, tenant_key: str, client: redis.Redis | None = None, url: str | None = None):
        self.tenant_key = tenant_key
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)

    def _key(self, name: str) -> str:
        return f"cache:{self.tenant_key}:{name}"

    @redis_retry()
    def _get_raw(self, name: str) -> str | None:
        return self.redis.get(self._key(name))

    @redis_retry()
    def _set_raw(self, name: str, value: str) -> None:
        self.redis.set(self._key(name), value)

    @redis_retry()
    def _set_many_raw(self, values: dict) -> None:
        pipe = self.redis.pipeline(transaction=True)
        for name, value in values.items():
            pipe.set(self._key(name), value)
        pipe.execute()

    @redis_retry()
    def _delete_raw(self, name: str) -> None:
        self.redis.delete(self._key(name))

    def read(self, name: str, default: Any = None) -> Any:
        try:
            raw = self._get_raw(name)
        except RedisError as e:
            logger.warning(f"Cache read {name} failed: {e}")
            return default

        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Cache key {name} holds invalid JSON, ignoring it")
            return default

    def write(self, name: str, value: Any) -> bool:
        try:
            self._set_raw(name, json.dumps(value, default=str))
        except RedisError as e:
            #e.g. OOM when maxmemory is reached
            logger.warning(f"Cache write {name} failed: {e}")
            return False
        return True

    #orders
    def get_orders(self) -> List[Order]:
        orders = []
        for raw in self.read(ORDERS_KEY, []) or []:
            try:
                orders.append(Order.model_validate(raw))
            except ValueError as e:
                logger.warning(f"Skipping cached order that no longer validates: {e}")
        return orders

    def save_orders(self, orders: List[Order]) -> bool:
        return self.write(ORDERS_KEY, [o.model_dump(mode="json") for o in orders])

    def get_current_order(self) -> Order | None:
        raw = self.read(CURRENT_ORDER_KEY)
        if not raw:
            return None
        try:
            return Order.model_validate(raw)
        except ValueError:
            return None

    def set_current_order(self, order: Order) -> bool:
        """Stores the current slot and upserts the same order into the list."""
        orders = self.get_orders()
        for idx, existing in enumerate(orders):
            if existing.id == order.id:
                orders[idx] = order
                break
        else:
            orders.append(order)

        try:
            self._set_many_raw({
                CURRENT_ORDER_KEY: json.dumps(order.model_dump(mode="json")),
                ORDERS_KEY: json.dumps([o.model_dump(mode="json") for o in orders]),
            })
        except RedisError as e:
            logger.warning(f"Cache write of current order failed: {e}")
            return False
        return True

    def find_order(self, order_id: str) -> Order | None:
        for order in self.get_orders():
            if order.id == str(order_id):
                return order
        current = self.get_current_order()
        if current is not None and current.id == str(order_id):
            return current
        return None

    def apply_status(self, order_id: str, status: DomainStatus) -> bool:
        """
        Same status mutation on the orders list and, if it holds that order,
        the current-order slot. Both keys go in one pipeline.
        """
        status = DomainStatus(status)
        values = {}

        orders = self.get_orders()
        changed = False
        for idx, order in enumerate(orders):
            if order.id == str(order_id):
                orders[idx] = order.model_copy(update={"status": status})
                changed = True
        if changed:
            values[ORDERS_KEY] = json.dumps([o.model_dump(mode="json") for o in orders])

        current = self.get_current_order()
        if current is not None and current.id == str(order_id):
            current = current.model_copy(update={"status": status})
            values[CURRENT_ORDER_KEY] = json.dumps(current.model_dump(mode="json"))

        if not values:
            logger.info(f"Order {order_id} not in local cache, nothing to update")
            return False

        try:
            self._set_many_raw(values)
        except RedisError as e:
            logger.warning(f"Cache status update for order {order_id} failed: {e}")
            return False
        return True

    def remove_order(self, order_id: str) -> bool:
        orders = self.get_orders()
        remaining = [o for o in orders if o.id != str(order_id)]
        if len(remaining) == len(orders):
            return False

        ok = self.save_orders(remaining)
        current = self.get_current_order()
        if current is not None and current.id == str(order_id):
            try:
                self._delete_raw(CURRENT_ORDER_KEY)
            except RedisError as e:
                logger.warning(f"Cache delete of current order failed: {e}")
        return ok

    #products
    def get_products(self) -> List[Product]:
        products = []
        for raw in self.read(PRODUCTS_KEY, []) or []:
            try:
                products.append(Product.model_validate(raw))
            except ValueError as e:
                logger.warning(f"Skipping cached product that no longer validates: {e}")
        return products

    def save_products(self, products: List[Product]) -> bool:
        return self.write(PRODUCTS_KEY, [p.model_dump(mode="json") for p in products])

    #kitchen
    def get_kitchen_open(self) -> bool:
        value = self.read(KITCHEN_OPEN_KEY)
        return value if isinstance(value, bool) else True

    def set_kitchen_open(self, is_open: bool) -> bool:
        return self.write(KITCHEN_OPEN_KEY, bool(is_open))

    def get_business_mode(self) -> BusinessMode:
        value = self.read(BUSINESS_MODE_KEY)
        return value if value in get_args(BusinessMode) else DEFAULT_BUSINESS_MODE

    def set_business_mode(self, mode: BusinessMode) -> bool:
        return self.write(BUSINESS_MODE_KEY, mode)
