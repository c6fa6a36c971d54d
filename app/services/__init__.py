from .auth_service import AuthService
from .catalog_service import CatalogService

__all__ = [
    "AuthService",
    "CatalogService",
]
