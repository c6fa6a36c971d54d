from .auth import AuthResponse, LoginRequest, RegisterRequest, UserRead
from .catalog import (
    ImageOperationRead,
    ProductFields,
    ProductImageRead,
    ProductPageRead,
    ProductRead,
)
from .common import CamelModel, HealthStatus

__all__ = [
    "AuthResponse",
    "CamelModel",
    "HealthStatus",
    "ImageOperationRead",
    "LoginRequest",
    "ProductFields",
    "ProductImageRead",
    "ProductPageRead",
    "ProductRead",
    "RegisterRequest",
    "UserRead",
]
