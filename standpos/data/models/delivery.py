from sqlalchemy import Column, Integer, ForeignKey, String

from standpos.data.database import Base


class ItemBoothModel(Base):
    """Car-side delivery at the toll booth."""

    __tablename__ = "item_booth"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=True)
    car_model = Column(String, nullable=True)
    plates = Column(String, nullable=True)


class ItemGubernamentalModel(Base):
    """Delivery to a government building."""

    __tablename__ = "item_gubernamental"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=True)
    address = Column(String, nullable=True)
    building = Column(String, nullable=True)
    floor = Column(String, nullable=True)
