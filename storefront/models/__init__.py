"""Models package - exports all SQLAlchemy models."""
# Identity
from storefront.models.profile import Profile
from storefront.models.address import Address
from storefront.models.dealer_application import DealerApplication, DealerStatus

# Catalog & pricing
from storefront.models.product import Product
from storefront.models.product_variant import ProductVariant
from storefront.models.price_list import PriceList, VariantPrice

# Cart & orders
from storefront.models.cart import Cart, CartStatus
from storefront.models.cart_item import CartItem
from storefront.models.order import Order, OrderStatus
from storefront.models.order_item import OrderItem

# Settings
from storefront.models.setting import Setting

__all__ = [
    'Profile', 'Address', 'DealerApplication', 'DealerStatus',
    'Product', 'ProductVariant', 'PriceList', 'VariantPrice',
    'Cart', 'CartStatus', 'CartItem', 'Order', 'OrderStatus', 'OrderItem',
    'Setting',
]
