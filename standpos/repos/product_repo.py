# standpos/repos/product_repo.py
from decimal import Decimal
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from standpos.data.models.product import ProductModel
from standpos.domain.errors import RemoteStoreError
from standpos.domain.schemas import Product, ProductIn, DEFAULT_CATEGORY
from standpos.utils.logging import get_logger

logger = get_logger(__name__)


def _to_product(model: ProductModel) -> Product:
    return Product(
        id=str(model.id),
        name=model.name,
        category=model.category or DEFAULT_CATEGORY,
        cost_price=Decimal(str(model.cost)),
        sale_price=Decimal(str(model.price)),
        image_ref=model.image_url or "",
        active=bool(model.active),
        stock_count=max(model.stock or 0, 0),
    )


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def _fail(self, action: str, e: Exception):
        self.db.rollback()
        logger.error(f"Remote store error in {action}: {e}")
        return RemoteStoreError(f"{action} failed: {e}")

    def _get(self, product_id: str) -> ProductModel | None:
        text = str(product_id).strip()
        if not text.isdigit():
            return None
        return self.db.get(ProductModel, int(text))

    def list_products(self) -> List[Product]:
        try:
            rows = self.db.execute(select(ProductModel).order_by(ProductModel.id)).scalars().all()
        except SQLAlchemyError as e:
            raise self._fail("list_products", e) from e
        return [_to_product(r) for r in rows]

    def get_product(self, product_id: str) -> Product | None:
        try:
            model = self._get(product_id)
        except SQLAlchemyError as e:
            raise self._fail("get_product", e) from e
        return _to_product(model) if model else None

    def create_product(self, payload: ProductIn) -> Product:
        model = ProductModel(
            name=payload.name,
            category=payload.category,
            price=payload.sale_price,
            cost=payload.cost_price,
            stock=payload.stock_count,
            image_url=payload.image_ref,
            active=payload.active,
        )
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
        except SQLAlchemyError as e:
            raise self._fail("create_product", e) from e

        logger.info(f"Product {model.id} created")
        return _to_product(model)

    def update_product(self, product_id: str, payload: ProductIn) -> Product | None:
        try:
            model = self._get(product_id)
            if model is None:
                return None

            model.name = payload.name
            model.category = payload.category
            model.price = payload.sale_price
            model.cost = payload.cost_price
            model.stock = payload.stock_count
            model.image_url = payload.image_ref
            model.active = payload.active
            self.db.commit()
            self.db.refresh(model)
        except SQLAlchemyError as e:
            raise self._fail("update_product", e) from e

        logger.info(f"Product {product_id} updated")
        return _to_product(model)

    def set_active(self, product_id: str, active: bool) -> Product | None:
        try:
            model = self._get(product_id)
            if model is None:
                return None
            model.active = active
            self.db.commit()
            self.db.refresh(model)
        except SQLAlchemyError as e:
            raise self._fail("set_active", e) from e
        return _to_product(model)

    def delete_product(self, product_id: str) -> bool:
        try:
            model = self._get(product_id)
            if model is None:
                return False
            self.db.delete(model)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("delete_product", e) from e

        logger.info(f"Product {product_id} deleted")
        return True
