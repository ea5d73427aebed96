from sqlalchemy import Column, Integer, Numeric

from standpos.data.database import Base


class SendPriceModel(Base):
    __tablename__ = "send_price"

    id = Column(Integer, primary_key=True)
    price = Column(Numeric(10, 2), nullable=True)
