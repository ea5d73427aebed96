import os

#engine in standpos.data.database is built at import time
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from standpos.api import deps
from standpos.data.database import Base, get_db
from standpos.data.models import (
    OrderModel,
    ItemOrderModel,
    ProductModel,
    UserModel,
    CouponModel,
    SendPriceModel,
    ItemBoothModel,
    ItemGubernamentalModel,
)
from standpos.main import create_app
from standpos.services.notification_service import NotificationBus
from standpos.utils.settings import SyncConfig

TENANT = "7"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def config():
    return SyncConfig(use_remote=True, tenant_scope="business", default_business_id="1")


@pytest.fixture
def bus():
    return NotificationBus()


@pytest.fixture
def seed(db):
    """Small data set for tenant 7: three paid orders and one unpaid."""
    now = datetime(2024, 5, 10, 18, 30, tzinfo=timezone.utc)

    tacos = ProductModel(name="Tacos", category="Comida", price=Decimal("45"), cost=Decimal("20"), stock=10)
    agua = ProductModel(name="Agua", category="Bebida", price=Decimal("25"), cost=Decimal("8"), stock=0)
    db.add_all([tacos, agua])
    db.add(UserModel(name="Ana Torres", phone="5512345678"))

    coupon = CouponModel(code="PROMO10", discount=Decimal("10"))
    fee = SendPriceModel(price=Decimal("15"))
    db.add_all([coupon, fee])
    db.flush()

    #plain order, no fee record, so the fallback fee applies
    plain = OrderModel(business_id=7, user_phone="5512345678", status="PAYED", created_at=now - timedelta(minutes=30))
    plain.items.append(ItemOrderModel(product_id=tacos.id, quantity=2))
    plain.items.append(ItemOrderModel(product_id=agua.id, quantity=1))

    booth = OrderModel(
        business_id=7,
        status="IN_PROGRESS",
        order_type="CASETA",
        coupon_applied=coupon.id,
        price_ref=fee.id,
        created_at=now - timedelta(minutes=10),
    )
    booth.items.append(ItemOrderModel(product_id=tacos.id, quantity=1))
    booth.booth.append(ItemBoothModel(car_model="Tsuru", plates="ABC-123"))

    secured = OrderModel(
        business_id=7,
        status="ON_THE_WAY",
        order_type="GUBERNAMENTAL",
        confirmation_code="4821",
        created_at=now,
    )
    secured.items.append(ItemOrderModel(product_id=tacos.id, quantity=3))
    secured.government.append(ItemGubernamentalModel(address="Av. Juarez 10", building="Torre B", floor="3"))

    unpaid = OrderModel(business_id=7, status="INIT", created_at=now + timedelta(minutes=5))
    unpaid.items.append(ItemOrderModel(product_id=tacos.id, quantity=1))

    other_tenant = OrderModel(business_id=8, status="PAYED", created_at=now)

    db.add_all([plain, booth, secured, unpaid, other_tenant])
    db.commit()
    #tests read back through fresh queries
    db.expire_all()

    return {
        "tacos": tacos,
        "agua": agua,
        "plain": plain,
        "booth": booth,
        "secured": secured,
        "unpaid": unpaid,
        "other_tenant": other_tenant,
    }


@pytest.fixture
def client(db, redis_client, config, bus):
    app = create_app()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_cache_client] = lambda: redis_client
    app.dependency_overrides[deps.get_config] = lambda: config
    app.dependency_overrides[deps.get_bus] = lambda: bus

    with_client = TestClient(app)
    yield with_client
    app.dependency_overrides.clear()
