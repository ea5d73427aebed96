# standpos/repos/order_repo.py
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List
from urllib.parse import quote
from zoneinfo import ZoneInfo

from sqlalchemy import select, update, func, false
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from standpos.data.models import (
    OrderModel,
    ItemOrderModel,
    UserModel,
    CouponModel,
    SendPriceModel,
    ItemBoothModel,
    ItemGubernamentalModel,
)
from standpos.domain.errors import RemoteStoreError
from standpos.domain.pricing import compute_subtotal, compute_total
from standpos.domain.schemas import (
    Order,
    OrderDraft,
    LineItem,
    Coupon,
    Customer,
    BoothDelivery,
    GovernmentDelivery,
    NoDelivery,
    DEFAULT_CUSTOMER_NAME,
)
from standpos.domain.status import DomainStatus, PersistenceStatus, to_domain, to_persistence
from standpos.utils.settings import SyncConfig
from standpos.utils.logging import get_logger

logger = get_logger(__name__)

ORDER_TYPE_BOOTH = "CASETA"
ORDER_TYPE_GOVERNMENT = "GUBERNAMENTAL"


def avatar_url(name: str) -> str:
    return f"https://ui-avatars.com/api/?name={quote(name)}&background=random"


def _parse_id(order_id) -> int | None:
    text = str(order_id).strip()
    return int(text) if text.isdigit() else None


class OrderRepo:
    """
    Orders in the remote store, joined with line items, coupon,
    delivery fee and the delivery-kind records.
    - reads never return unpaid (INIT) orders
    - every query is scoped by the tenant key
    - writes are not retried here, failures go up as RemoteStoreError
    """

    def __init__(self, db: Session, config: SyncConfig | None = None):
        self.db = db
        self.config = config or SyncConfig()
        self.display_tz = ZoneInfo(self.config.display_timezone)

    @contextmanager
    def _remote(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Remote store error in {action}: {e}")
            raise RemoteStoreError(f"{action} failed: {e}") from e
        except Exception:
            self.db.rollback()
            raise

    def _tenant_clause(self, tenant_key: str):
        if self.config.tenant_scope == "phone":
            return OrderModel.user_phone == tenant_key
        #business ids are numeric, anything else matches nothing
        business_id = _parse_id(tenant_key)
        if business_id is None:
            return false()
        return OrderModel.business_id == business_id

    def _orders_query(self, tenant_key: str):
        return (
            select(OrderModel)
            .options(
                selectinload(OrderModel.items).selectinload(ItemOrderModel.product),
                selectinload(OrderModel.coupon),
                selectinload(OrderModel.send_price),
                selectinload(OrderModel.booth),
                selectinload(OrderModel.government),
            )
            .where(
                self._tenant_clause(tenant_key),
                OrderModel.status != PersistenceStatus.UNPAID.value,
            )
        )

    def _customer_names(self, phones: Iterable[str | None]) -> Dict[str, str]:
        wanted = {p for p in phones if p}
        if not wanted:
            return {}
        rows = self.db.execute(
            select(UserModel.phone, UserModel.name).where(UserModel.phone.in_(wanted))
        ).all()
        return {phone: name for phone, name in rows}

    def _display_time(self, created_at: datetime) -> str:
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return created_at.astimezone(self.display_tz).strftime("%H:%M")

    def _to_order(self, model: OrderModel, names: Dict[str, str]) -> Order:
        #lines whose product did not resolve are dropped
        items = [
            LineItem(
                product_id=str(i.product.id),
                name=i.product.name,
                quantity=i.quantity,
                unit_price=Decimal(str(i.product.price)),
                image_ref=i.product.image_url or None,
            )
            for i in model.items
            if i.product is not None and i.product.name
        ]
        subtotal = compute_subtotal(items)

        coupon = None
        if model.coupon_applied and model.coupon is not None:
            coupon = Coupon(code=model.coupon.code, discount_amount=Decimal(str(model.coupon.discount)))

        if model.send_price is not None and model.send_price.price is not None:
            delivery_fee = Decimal(str(model.send_price.price))
        else:
            delivery_fee = self.config.fallback_delivery_fee

        total = compute_total(
            subtotal,
            coupon.discount_amount if coupon else None,
            delivery_fee,
        )

        if model.order_type == ORDER_TYPE_BOOTH and model.booth:
            booth = model.booth[0]
            delivery = BoothDelivery(vehicle=booth.car_model or None, plates=booth.plates or None)
        elif model.order_type == ORDER_TYPE_GOVERNMENT and model.government:
            gov = model.government[0]
            delivery = GovernmentDelivery(
                address=gov.address or None,
                building=gov.building or None,
                floor=gov.floor or None,
            )
        else:
            delivery = NoDelivery()

        name = names.get(model.user_phone or "", DEFAULT_CUSTOMER_NAME)
        created_at = model.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        return Order(
            id=str(model.id),
            status=to_domain(model.status),
            line_items=items,
            subtotal=subtotal,
            total=total,
            delivery_fee=delivery_fee,
            coupon=coupon,
            delivery=delivery,
            customer=Customer(display_name=name, avatar_ref=avatar_url(name), phone=model.user_phone or ""),
            requires_confirmation=bool(model.confirmation_code),
            confirmation_code=model.confirmation_code,
            created_at=created_at,
            display_time=self._display_time(created_at),
            note=model.note,
        )

    #queries
    def list_orders(self, tenant_key: str) -> List[Order]:
        with self._remote("list_orders"):
            rows = self.db.execute(
                self._orders_query(tenant_key).order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars().all()
            names = self._customer_names(r.user_phone for r in rows)

        logger.info(f"Fetched {len(rows)} orders for tenant {tenant_key}")
        return [self._to_order(r, names) for r in rows]

    def get_order_by_id(self, order_id: str, tenant_key: str) -> Order | None:
        oid = _parse_id(order_id)
        if oid is None:
            return None

        with self._remote("get_order_by_id"):
            row = self.db.execute(
                self._orders_query(tenant_key).where(OrderModel.id == oid)
            ).scalar_one_or_none()
            if row is None:
                return None
            names = self._customer_names([row.user_phone])

        return self._to_order(row, names)

    def get_confirmation_code(self, order_id: str, tenant_key: str) -> str | None:
        oid = _parse_id(order_id)
        if oid is None:
            return None

        with self._remote("get_confirmation_code"):
            return self.db.execute(
                select(OrderModel.confirmation_code).where(
                    OrderModel.id == oid,
                    self._tenant_clause(tenant_key),
                )
            ).scalar_one_or_none()

    def count_paid_orders(self, tenant_key: str) -> int:
        with self._remote("count_paid_orders"):
            return self.db.execute(
                select(func.count(OrderModel.id)).where(
                    self._tenant_clause(tenant_key),
                    OrderModel.status == PersistenceStatus.PAID.value,
                )
            ).scalar_one()

    #commands
    def set_status(self, order_id: str, status: DomainStatus, tenant_key: str) -> bool:
        """
        Scoped update, unpaid (INIT) orders are never touched.
        Returns False when no row matched.
        """
        stored = to_persistence(status)
        oid = _parse_id(order_id)
        if oid is None:
            logger.warning(f"set_status skipped, order id {order_id!r} is not numeric")
            return False

        with self._remote("set_status"):
            result = self.db.execute(
                update(OrderModel)
                .where(
                    OrderModel.id == oid,
                    self._tenant_clause(tenant_key),
                    OrderModel.status != PersistenceStatus.UNPAID.value,
                )
                .values(status=stored.value)
            )
            self.db.commit()

        if result.rowcount == 0:
            logger.warning(f"set_status matched no paid order {order_id} for tenant {tenant_key}")
            return False

        logger.info(f"Order {order_id} stored as {stored.value}")
        return True

    def create_order(self, draft: OrderDraft, tenant_key: str) -> Order:
        """
        Header and line items go in one transaction.
        If any item insert fails the header is rolled back too, no orphans.
        """
        product_ids = [_parse_id(i.product_id) for i in draft.line_items]
        if any(pid is None for pid in product_ids):
            raise ValueError("Product ids must be numeric")

        header = OrderModel(
            status=PersistenceStatus.UNPAID.value,
            note=draft.note,
            confirmation_code=draft.confirmation_code,
        )
        if self.config.tenant_scope == "phone":
            header.user_phone = tenant_key
        else:
            business_id = _parse_id(tenant_key)
            if business_id is None:
                raise ValueError("Business id must be numeric")
            header.business_id = business_id
            header.user_phone = draft.customer.phone or None

        with self._remote("create_order"):
            if draft.coupon is not None:
                coupon = self.db.execute(
                    select(CouponModel).where(CouponModel.code == draft.coupon.code)
                ).scalars().first()
                if coupon is None:
                    raise ValueError(f"Unknown coupon {draft.coupon.code}")
                header.coupon_applied = coupon.id

            if draft.delivery_fee is not None:
                fee = SendPriceModel(price=draft.delivery_fee)
                self.db.add(fee)
                self.db.flush()
                header.price_ref = fee.id

            if isinstance(draft.delivery, BoothDelivery):
                header.order_type = ORDER_TYPE_BOOTH
                header.booth.append(ItemBoothModel(car_model=draft.delivery.vehicle, plates=draft.delivery.plates))
            elif isinstance(draft.delivery, GovernmentDelivery):
                header.order_type = ORDER_TYPE_GOVERNMENT
                header.government.append(
                    ItemGubernamentalModel(
                        address=draft.delivery.address,
                        building=draft.delivery.building,
                        floor=draft.delivery.floor,
                    )
                )

            self.db.add(header)
            self.db.flush()

            for item, pid in zip(draft.line_items, product_ids):
                self.db.add(ItemOrderModel(order_id=header.id, product_id=pid, quantity=item.quantity))

            self.db.commit()

        logger.info(f"Order {header.id} created for tenant {tenant_key} with {len(draft.line_items)} items")

        created_at = header.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        delivery_fee = draft.delivery_fee if draft.delivery_fee is not None else self.config.fallback_delivery_fee
        subtotal = compute_subtotal(draft.line_items)

        return Order(
            id=str(header.id),
            status=to_domain(header.status),
            line_items=draft.line_items,
            subtotal=subtotal,
            total=compute_total(
                subtotal,
                draft.coupon.discount_amount if draft.coupon else None,
                delivery_fee,
            ),
            delivery_fee=delivery_fee,
            coupon=draft.coupon,
            delivery=draft.delivery,
            customer=draft.customer,
            requires_confirmation=bool(draft.confirmation_code),
            confirmation_code=draft.confirmation_code,
            created_at=created_at,
            display_time=self._display_time(created_at),
            note=draft.note,
            fulfillment=draft.fulfillment,
        )
