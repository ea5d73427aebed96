from sqlalchemy import Column, Integer, ForeignKey, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from standpos.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    #tenant keys, only one of them is used depending on TENANT_SCOPE
    user_phone = Column(String, nullable=True, index=True)
    business_id = Column(Integer, nullable=True, index=True)

    status = Column(String, nullable=False, default="INIT")  # INIT, PAYED, IN_PROGRESS, READY, ON_THE_WAY, DELIVERED
    order_type = Column(String, nullable=True)  # CASETA, GUBERNAMENTAL
    coupon_applied = Column(Integer, ForeignKey("coupons.id"), nullable=True)
    price_ref = Column("price", Integer, ForeignKey("send_price.id"), nullable=True)
    confirmation_code = Column(String, nullable=True)
    note = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "ItemOrderModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ItemOrderModel.id",
    )
    coupon = relationship("CouponModel")
    send_price = relationship("SendPriceModel")
    booth = relationship("ItemBoothModel", cascade="all, delete-orphan", order_by="ItemBoothModel.id")
    government = relationship(
        "ItemGubernamentalModel",
        cascade="all, delete-orphan",
        order_by="ItemGubernamentalModel.id",
    )
