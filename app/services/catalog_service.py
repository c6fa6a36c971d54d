"""Keeps product records and their image files consistent.

Record mutations go through :class:`CatalogRepository` inside a database
transaction; file mutations go through the asset store and are never part of
that transaction. Ordering per operation:

* create / upload: product row first, then save file, then insert image row.
* remove image / delete product: delete file first, then remove the rows.

A crash between the two steps therefore leaves either an orphaned file
(harmless) or a record whose file is gone, which is reported as an
:class:`IntegrityFault` when that image is served.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import Product
from app.repositories import CatalogRepository

from . import exceptions
from .pagination import PageMeta, build_page_meta

if TYPE_CHECKING:  # pragma: no cover
    from app.core.storage import AssetStore
    from app.schemas.catalog import ProductFields

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    content: bytes
    filename: str
    content_type: Optional[str] = None


@dataclass
class UploadOutcome:
    accepted: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


@dataclass
class ImageOperationResult:
    success: bool
    message: str
    not_found: bool = False
    image_urls: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


@dataclass
class ProductPage:
    items: list[Product]
    meta: PageMeta


@dataclass
class AssetAudit:
    missing_files: list[str] = field(default_factory=list)
    orphaned_files: list[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.missing_files


class CatalogService:
    def __init__(self, db: Session, assets: "AssetStore"):
        self.db = db
        self.assets = assets
        self.repository = CatalogRepository(db)

    def list_products(self, *, page_number: int, page_size: int, search: Optional[str] = None) -> ProductPage:
        items, total = self.repository.list(page_number=page_number, page_size=page_size, search=search)
        return ProductPage(items=items, meta=build_page_meta(total, page_number, page_size))

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.repository.get_by_id(product_id)

    def create_product(self, *, fields: "ProductFields", files: Iterable[UploadedFile] = ()) -> Product:
        with self._transaction():
            product_id = self.repository.insert(Product(**fields.model_dump()))
        logger.info("Product created with ID: %s", product_id)

        files = list(files)
        if files:
            logger.info("Uploading %d images for product %s", len(files), product_id)
            outcome = self._store_images(product_id, files)
            logger.info(
                "Product %s: %d images accepted, %d rejected",
                product_id,
                len(outcome.accepted),
                len(outcome.rejected),
            )

        created = self.repository.get_by_id(product_id)
        if created is None:
            logger.error("Failed to retrieve created product %s", product_id)
            raise exceptions.IntegrityFault(f"Product {product_id} was created but could not be retrieved")
        return created

    def update_product(
        self,
        *,
        product_id: int,
        fields: "ProductFields",
        remove_image_ids: Iterable[int] = (),
        new_files: Iterable[UploadedFile] = (),
    ) -> Optional[Product]:
        product = self.repository.get_by_id(product_id)
        if product is None:
            logger.warning("Product with ID %s not found for update", product_id)
            return None

        # full replace: omitted optional fields are cleared, not kept
        for key, value in fields.model_dump().items():
            setattr(product, key, value)
        logger.info(
            "Updating product %s: name=%s price=%s quantity=%s",
            product_id,
            product.name,
            product.price,
            product.quantity,
        )

        owned = {image.id: image for image in product.images}
        with self._transaction():
            for image_id in dict.fromkeys(remove_image_ids):
                image = owned.get(image_id)
                if image is None:
                    logger.warning("Image %s does not belong to product %s, skipping", image_id, product_id)
                    continue
                self.assets.delete(image.image_url)
                self.repository.remove_image(image)
            self.repository.update(product)

        new_files = list(new_files)
        if new_files:
            logger.info("Uploading %d new images for product %s", len(new_files), product_id)
            self._store_images(product_id, new_files)

        return self.repository.get_by_id(product_id)

    def delete_product(self, product_id: int) -> bool:
        product = self.repository.get_by_id(product_id)
        if product is None:
            logger.warning("Product with ID %s not found for deletion", product_id)
            return False

        logger.info("Deleting product %s with %d images", product_id, len(product.images))
        for image in product.images:
            self.assets.delete(image.image_url)

        with self._transaction():
            self.repository.delete(product_id)
        logger.info("Product %s deleted successfully", product_id)
        return True

    def upload_images(self, product_id: int, files: Iterable[UploadedFile]) -> ImageOperationResult:
        if not self.repository.exists(product_id):
            logger.warning("Product %s not found for image upload", product_id)
            return ImageOperationResult(success=False, message="Product not found", not_found=True)

        outcome = self._store_images(product_id, list(files))
        if outcome.accepted:
            message = f"{len(outcome.accepted)} images uploaded successfully"
        else:
            message = "No images were uploaded"
        return ImageOperationResult(
            success=bool(outcome.accepted),
            message=message,
            image_urls=outcome.accepted,
            rejected=outcome.rejected,
        )

    def delete_image(self, image_id: int) -> ImageOperationResult:
        image = self.repository.find_image(image_id)
        if image is None:
            logger.warning("Image with ID %s not found", image_id)
            return ImageOperationResult(success=False, message="Image not found", not_found=True)

        self.assets.delete(image.image_url)
        with self._transaction():
            self.repository.remove_image(image)
        logger.info("Image %s deleted successfully", image_id)
        return ImageOperationResult(success=True, message="Image deleted successfully")

    def get_image_file(self, file_name: str) -> Path:
        """Resolve a served image name to its file on disk."""

        image_url = f"{self.assets.url_prefix}/{Path(file_name).name}"
        image = self.repository.find_image_by_url(image_url)
        if image is None:
            raise exceptions.NotFoundError("Image not found")
        path = self.assets.resolve(image.image_url)
        if path is None or not path.is_file():
            logger.error(
                "Integrity fault: image %s of product %s has no file at %s",
                image.id,
                image.product_id,
                image.image_url,
            )
            raise exceptions.IntegrityFault(f"Image {image.id} is missing its file")
        return path

    def audit_assets(self) -> AssetAudit:
        recorded = self.repository.list_image_urls()
        recorded_set = set(recorded)
        audit = AssetAudit(
            missing_files=[url for url in recorded if not self.assets.exists(url)],
            orphaned_files=[url for url in self.assets.list_files() if url not in recorded_set],
        )
        for url in audit.missing_files:
            logger.error("Integrity fault: no file for image record %s", url)
        return audit

    def purge_orphans(self, orphaned_files: Iterable[str], *, min_age_seconds: float) -> list[str]:
        """Delete orphaned files older than ``min_age_seconds``.

        Uploads write the file before its record, so a young orphan may belong
        to an upload that is still in flight and is left alone.
        """
        removed: list[str] = []
        for url in orphaned_files:
            age = self.assets.age_seconds(url)
            if age is None:
                continue
            if age < min_age_seconds:
                logger.info("Keeping recent orphan %s (%.0fs old)", url, age)
                continue
            if self.assets.delete(url):
                removed.append(url)
        return removed

    def _store_images(self, product_id: int, files: list[UploadedFile]) -> UploadOutcome:
        outcome = UploadOutcome()
        try:
            with self._transaction():
                for upload in files:
                    try:
                        image_url = self.assets.save(upload.content, upload.filename)
                    except exceptions.ValidationRejected as exc:
                        logger.warning("Rejected %s for product %s: %s", upload.filename, product_id, exc)
                        outcome.rejected.append(f"{upload.filename}: {exc}")
                        continue
                    except exceptions.StorageUnavailable as exc:
                        logger.error("Failed to upload image %s: %s", upload.filename, exc)
                        outcome.rejected.append(f"{upload.filename}: {exc}")
                        continue
                    outcome.accepted.append(image_url)
                    self.repository.insert_image(product_id, image_url)
        except (exceptions.StorageUnavailable, SQLAlchemyError):
            # the records were rolled back, so the files written in this batch are orphans
            for image_url in outcome.accepted:
                self.assets.delete(image_url)
            raise
        return outcome

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Commit on success; roll back on any database error raised by flush or commit."""
        try:
            yield
            self.db.commit()
        except OperationalError as exc:
            self.db.rollback()
            raise exceptions.StorageUnavailable("Database is unavailable") from exc
        except SQLAlchemyError:
            self.db.rollback()
            raise
