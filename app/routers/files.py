from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from app.core.dependencies import get_catalog_service
from app.services import CatalogService
from app.services import exceptions as service_exceptions


def get_product_image(file_name: str, service: CatalogService = Depends(get_catalog_service)):
    try:
        file_path = service.get_image_file(file_name)
    except service_exceptions.NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found") from exc
    return FileResponse(file_path)


def build_router(url_prefix: str) -> APIRouter:
    """Serve product images under the same prefix the asset store writes into stored URLs."""

    router = APIRouter(tags=["files"])
    router.add_api_route(
        "/" + url_prefix.strip("/") + "/{file_name}",
        get_product_image,
        methods=["GET"],
    )
    return router
