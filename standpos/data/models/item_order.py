from sqlalchemy import Column, Integer, ForeignKey
from sqlalchemy.orm import relationship

from standpos.data.database import Base


class ItemOrderModel(Base):
    __tablename__ = "item_order"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=True)
    #nullable, product may be gone by the time the order is read
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, nullable=False)

    order = relationship("OrderModel", back_populates="items")
    product = relationship("ProductModel")
