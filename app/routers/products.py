import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from app.core.config import get_settings
from app.core.dependencies import get_catalog_service, get_current_admin
from app.models import User
from app.schemas import ImageOperationRead, ProductFields, ProductPageRead, ProductRead
from app.services import CatalogService
from app.services.catalog_service import UploadedFile

logger = logging.getLogger(__name__)

# ids and page numbers are 32-bit signed integers in the database
MAX_DB_INT = 2**31 - 1

router = APIRouter(prefix="/products", tags=["products"])


def product_fields(
    name: str = Form(...),
    description: Optional[str] = Form(default=None),
    price: Decimal = Form(...),
    quantity: int = Form(default=0),
) -> ProductFields:
    try:
        return ProductFields(name=name, description=description, price=price, quantity=quantity)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc


async def _read_uploads(files: Optional[list[UploadFile]], max_bytes: int) -> list[UploadedFile]:
    uploads: list[UploadedFile] = []
    for upload_file in files or []:
        if not upload_file.filename:
            continue
        # one byte past the limit is enough for the store to reject it
        contents = await upload_file.read(max_bytes + 1)
        uploads.append(
            UploadedFile(content=contents, filename=upload_file.filename, content_type=upload_file.content_type)
        )
    return uploads


def _ensure_positive_id(value: int, label: str) -> None:
    if value <= 0 or value > MAX_DB_INT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label} ID")


@router.get("", response_model=ProductPageRead)
def list_products(
    page_number: int = Query(default=1),
    page_size: Optional[int] = Query(default=None),
    search: Optional[str] = Query(default=None),
    service: CatalogService = Depends(get_catalog_service),
):
    settings = get_settings()
    page_number = min(max(page_number, 1), MAX_DB_INT)
    if page_size is None or page_size < 1:
        page_size = settings.DEFAULT_PAGE_SIZE
    page_size = min(page_size, settings.MAX_PAGE_SIZE)

    page = service.list_products(page_number=page_number, page_size=page_size, search=search)
    return ProductPageRead(
        items=[ProductRead.model_validate(item) for item in page.items],
        total_count=page.meta.total_count,
        total_pages=page.meta.total_pages,
        current_page=page.meta.current_page,
        page_size=page.meta.page_size,
        has_previous_page=page.meta.has_previous_page,
        has_next_page=page.meta.has_next_page,
    )


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, service: CatalogService = Depends(get_catalog_service)):
    _ensure_positive_id(product_id, "product")
    product = service.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product with ID {product_id} not found")
    return ProductRead.model_validate(product)


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    fields: ProductFields = Depends(product_fields),
    images: Optional[list[UploadFile]] = File(default=None),
    admin: User = Depends(get_current_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    logger.info("Create product requested by %s", admin.username)
    uploads = await _read_uploads(images, service.assets.max_bytes)
    product = service.create_product(fields=fields, files=uploads)
    return ProductRead.model_validate(product)


@router.put("/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: int,
    fields: ProductFields = Depends(product_fields),
    new_images: Optional[list[UploadFile]] = File(default=None),
    remove_image_ids: Optional[list[int]] = Form(default=None),
    admin: User = Depends(get_current_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    _ensure_positive_id(product_id, "product")
    uploads = await _read_uploads(new_images, service.assets.max_bytes)
    product = service.update_product(
        product_id=product_id,
        fields=fields,
        remove_image_ids=remove_image_ids or [],
        new_files=uploads,
    )
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product with ID {product_id} not found")
    logger.info("Product %s updated by %s", product_id, admin.username)
    return ProductRead.model_validate(product)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: int,
    admin: User = Depends(get_current_admin),
    service: CatalogService = Depends(get_catalog_service),
) -> None:
    _ensure_positive_id(product_id, "product")
    if not service.delete_product(product_id):
        raise HTTPException(status_code=404, detail=f"Product with ID {product_id} not found")
    logger.info("Product %s deleted by %s", product_id, admin.username)


@router.post("/{product_id}/images", response_model=ImageOperationRead)
async def upload_product_images(
    product_id: int,
    images: Optional[list[UploadFile]] = File(default=None),
    admin: User = Depends(get_current_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    _ensure_positive_id(product_id, "product")
    uploads = await _read_uploads(images, service.assets.max_bytes)
    if not uploads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No images uploaded")

    result = service.upload_images(product_id, uploads)
    if not result.success:
        if result.not_found:
            raise HTTPException(status_code=404, detail=result.message)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": result.message, "rejected": result.rejected},
        )
    return ImageOperationRead.model_validate(result)


@router.delete("/images/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product_image(
    image_id: int,
    admin: User = Depends(get_current_admin),
    service: CatalogService = Depends(get_catalog_service),
) -> None:
    _ensure_positive_id(image_id, "image")
    result = service.delete_image(image_id)
    if not result.success:
        raise HTTPException(status_code=404, detail=result.message)
