from sqlalchemy import Column, Integer, String, Numeric, Boolean

from standpos.data.database import Base


class CouponModel(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String, nullable=False)
    discount = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=True, default=True)
