from .base import Base
from .enums import UserRole
from .product import Product, ProductImage
from .user import User

__all__ = [
    "Base",
    "Product",
    "ProductImage",
    "User",
    "UserRole",
]
