from typing import List, Tuple

import redis
from sqlalchemy.orm import Session

from standpos.domain.errors import RemoteStoreError
from standpos.domain.pricing import ZERO
from standpos.domain.schemas import Product, ProductIn, CatalogSummary, DEFAULT_PRODUCT_IMAGE
from standpos.repos.product_repo import ProductRepo
from standpos.services.cache_store import LocalCacheStore
from standpos.utils.settings import SyncConfig
from standpos.utils.logging import get_logger

logger = get_logger(__name__)


def summarize(products: List[Product], offline: bool = False) -> CatalogSummary:
    """Availability needs active and stock > 0; inventory cost counts active products only."""
    inventory_cost = sum(
        (p.cost_price * p.stock_count for p in products if p.active),
        ZERO,
    )
    return CatalogSummary(
        products=products,
        total_count=len(products),
        available_count=sum(1 for p in products if p.is_available),
        inventory_cost=inventory_cost,
        offline=offline,
    )


class ProductCatalogService:
    """
    Product CRUD against the remote store.
    The local cache keeps a mirror of the last list, used when the store is down.
    """

    def __init__(
        self,
        db: Session,
        cache_client: redis.Redis,
        config: SyncConfig | None = None,
        repo: ProductRepo | None = None,
    ):
        self.config = config or SyncConfig()
        self.repo = repo or ProductRepo(db)
        self.cache_client = cache_client

    def _cache(self, tenant_key: str | None) -> LocalCacheStore:
        return LocalCacheStore(tenant_key or self.config.default_tenant, client=self.cache_client)

    def _require_remote(self):
        if not self.config.use_remote:
            raise RemoteStoreError("Catalog changes need the remote store")

    def _load(self, tenant_key: str | None) -> Tuple[List[Product], bool]:
        cache = self._cache(tenant_key)
        if not self.config.use_remote:
            return cache.get_products(), False

        try:
            products = self.repo.list_products()
        except RemoteStoreError as e:
            logger.warning(f"Serving cached catalog: {e}")
            return cache.get_products(), True

        cache.save_products(products)
        return products, False

    def _mirror(self, tenant_key: str | None, product: Product | None = None, removed_id: str | None = None):
        cache = self._cache(tenant_key)
        products = [p for p in cache.get_products() if p.id not in (removed_id, product.id if product else None)]
        if product is not None:
            products.append(product)
            products.sort(key=lambda p: int(p.id) if p.id.isdigit() else 0)
        cache.save_products(products)

    @staticmethod
    def _with_defaults(payload: ProductIn) -> ProductIn:
        name = payload.name.strip()
        if not name:
            raise ValueError("Product name is required")
        image = payload.image_ref.strip() or DEFAULT_PRODUCT_IMAGE
        return payload.model_copy(update={"name": name, "image_ref": image})

    #queries
    def list_products(self, tenant_key: str | None) -> List[Product]:
        products, _ = self._load(tenant_key)
        return products

    def summary(self, tenant_key: str | None) -> CatalogSummary:
        products, offline = self._load(tenant_key)
        return summarize(products, offline)

    #commands
    def create_product(self, payload: ProductIn, tenant_key: str | None) -> Product:
        self._require_remote()
        product = self.repo.create_product(self._with_defaults(payload))
        self._mirror(tenant_key, product)
        return product

    def update_product(self, product_id: str, payload: ProductIn, tenant_key: str | None) -> Product | None:
        self._require_remote()
        product = self.repo.update_product(product_id, self._with_defaults(payload))
        if product is not None:
            self._mirror(tenant_key, product)
        return product

    def toggle_product(self, product_id: str, tenant_key: str | None) -> Product | None:
        self._require_remote()
        current = self.repo.get_product(product_id)
        if current is None:
            return None

        product = self.repo.set_active(product_id, not current.active)
        if product is not None:
            logger.info(f"Product {product_id} active={product.active}")
            self._mirror(tenant_key, product)
        return product

    def delete_product(self, product_id: str, tenant_key: str | None) -> bool:
        self._require_remote()
        deleted = self.repo.delete_product(product_id)
        if deleted:
            self._mirror(tenant_key, removed_id=str(product_id))
        return deleted
