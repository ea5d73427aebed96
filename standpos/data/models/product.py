from sqlalchemy import Column, Integer, String, Numeric, Boolean

from standpos.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    cost = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    image_url = Column(String, nullable=False, default="")
    business = Column(String, nullable=False, default="PUESTO")  # JAGUARES, PUESTO
    active = Column(Boolean, nullable=False, default=True)
