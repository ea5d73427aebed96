#import all models so SQLAlchemy registers them in Base.metadata

from standpos.data.models.user import UserModel
from standpos.data.models.coupon import CouponModel
from standpos.data.models.send_price import SendPriceModel
from standpos.data.models.product import ProductModel
from standpos.data.models.order import OrderModel
from standpos.data.models.item_order import ItemOrderModel
from standpos.data.models.delivery import ItemBoothModel, ItemGubernamentalModel

__all__ = [
    "UserModel",
    "CouponModel",
    "SendPriceModel",
    "ProductModel",
    "OrderModel",
    "ItemOrderModel",
    "ItemBoothModel",
    "ItemGubernamentalModel",
]
