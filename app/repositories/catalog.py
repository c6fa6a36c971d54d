"""Persistence boundary for products and their image records.

Methods only flush; the calling service owns commit and rollback so that
several mutations can share one transaction.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from app.models import Product, ProductImage


class CatalogRepository:
    def __init__(self, db: Session):
        self.db = db

    def list(
        self,
        *,
        page_number: int,
        page_size: int,
        search: Optional[str] = None,
    ) -> tuple[list[Product], int]:
        """Return one page of products (newest id first) and the total match count.

        ``search`` is a case-insensitive substring match on the product name.
        """
        query = self.db.query(Product)
        if search and search.strip():
            query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
        total = query.count()
        products = (
            query.options(selectinload(Product.images))
            .order_by(Product.id.desc())
            .offset((page_number - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return products, total

    def get_by_id(self, product_id: int) -> Optional[Product]:
        return (
            self.db.query(Product)
            .options(selectinload(Product.images))
            .execution_options(populate_existing=True)
            .filter(Product.id == product_id)
            .first()
        )

    def exists(self, product_id: int) -> bool:
        return self.db.query(Product.id).filter(Product.id == product_id).first() is not None

    def insert(self, product: Product) -> int:
        self.db.add(product)
        self.db.flush()
        return product.id

    def update(self, product: Product) -> None:
        self.db.add(product)
        self.db.flush()

    def delete(self, product_id: int) -> bool:
        product = self.get_by_id(product_id)
        if product is None:
            return False
        self.db.delete(product)
        self.db.flush()
        return True

    def insert_image(self, product_id: int, image_url: str) -> int:
        image = ProductImage(product_id=product_id, image_url=image_url)
        self.db.add(image)
        self.db.flush()
        return image.id

    def remove_image(self, image: ProductImage) -> None:
        product = image.product
        if product is not None and image in product.images:
            product.images.remove(image)
        self.db.delete(image)
        self.db.flush()

    def find_image(self, image_id: int) -> Optional[ProductImage]:
        return self.db.query(ProductImage).filter(ProductImage.id == image_id).first()

    def find_image_by_url(self, image_url: str) -> Optional[ProductImage]:
        return self.db.query(ProductImage).filter(ProductImage.image_url == image_url).first()

    def list_image_urls(self) -> list[str]:
        return [url for (url,) in self.db.query(ProductImage.image_url).order_by(ProductImage.id).all()]
