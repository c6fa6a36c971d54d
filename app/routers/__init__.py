from fastapi import APIRouter

from app.core.config import get_settings

from . import auth, files, health, products


def get_api_router() -> APIRouter:
    router = APIRouter()
    router.include_router(health.router)
    router.include_router(auth.router)
    router.include_router(products.router)
    return router


def get_static_router() -> APIRouter:
    return files.build_router(get_settings().PRODUCT_IMAGE_DIR_NAME)
