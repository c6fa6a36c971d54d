import os
import time
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError

from app.models import Product, ProductImage
from app.schemas import ProductFields
from app.services import exceptions
from app.services.catalog_service import UploadedFile

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _fields(name="Widget", price="9.99", quantity=5, description=None) -> ProductFields:
    return ProductFields(name=name, description=description, price=Decimal(price), quantity=quantity)


def _png(name="photo.png") -> UploadedFile:
    return UploadedFile(content=PNG_BYTES, filename=name, content_type="image/png")


def test_create_round_trip(catalog_service, asset_store):
    created = catalog_service.create_product(fields=_fields(), files=[_png()])

    fetched = catalog_service.get_product(created.id)
    assert fetched is not None
    assert fetched.name == "Widget"
    assert fetched.price == Decimal("9.99")
    assert fetched.quantity == 5
    assert fetched.description is None
    assert len(fetched.images) == 1
    assert asset_store.exists(fetched.images[0].image_url)


def test_create_skips_rejected_files(catalog_service, asset_store):
    files = [
        _png("a.png"),
        UploadedFile(content=b"text", filename="notes.txt"),
        UploadedFile(content=b"\x00" * (5 * 1024 * 1024 + 1), filename="huge.jpg"),
        _png("b.JPG"),
    ]

    created = catalog_service.create_product(fields=_fields(), files=files)

    assert len(created.images) == 2
    assert len(asset_store.list_files()) == 2


def test_create_with_only_rejected_files_still_creates_product(catalog_service):
    created = catalog_service.create_product(
        fields=_fields(), files=[UploadedFile(content=b"x", filename="virus.exe")]
    )

    assert created.id is not None
    assert created.images == []


def test_create_keeps_images_in_insertion_order(catalog_service):
    created = catalog_service.create_product(fields=_fields(), files=[_png("1.png"), _png("2.png"), _png("3.png")])

    ids = [image.id for image in created.images]
    assert ids == sorted(ids)


def test_create_raises_integrity_fault_when_reread_fails(catalog_service, monkeypatch):
    monkeypatch.setattr(catalog_service.repository, "get_by_id", lambda product_id: None)

    with pytest.raises(exceptions.IntegrityFault):
        catalog_service.create_product(fields=_fields())


def test_update_replaces_scalars_and_swaps_images(catalog_service, asset_store):
    created = catalog_service.create_product(
        fields=_fields(description="old"), files=[_png("keep.png"), _png("drop.png")]
    )
    keep, drop = created.images
    keep_id, keep_url = keep.id, keep.image_url
    drop_id, drop_url = drop.id, drop.image_url

    updated = catalog_service.update_product(
        product_id=created.id,
        fields=_fields(name="Gadget", price="12.50", quantity=0),
        remove_image_ids=[drop_id],
        new_files=[_png("new.png")],
    )

    assert updated.name == "Gadget"
    assert updated.price == Decimal("12.50")
    assert updated.quantity == 0
    # full replace: description was omitted so it is cleared
    assert updated.description is None

    remaining = {image.id for image in updated.images}
    assert keep_id in remaining
    assert drop_id not in remaining
    assert len(remaining) == 2
    new_url = next(image.image_url for image in updated.images if image.id != keep_id)
    assert not asset_store.exists(drop_url)
    assert asset_store.exists(keep_url)
    assert asset_store.exists(new_url)


def test_update_ignores_images_of_other_products(catalog_service, asset_store):
    first = catalog_service.create_product(fields=_fields(name="First"), files=[_png()])
    second = catalog_service.create_product(fields=_fields(name="Second"), files=[_png()])
    foreign_id = second.images[0].id
    foreign_url = second.images[0].image_url

    catalog_service.update_product(product_id=first.id, fields=_fields(name="First"), remove_image_ids=[foreign_id, 999999])

    assert len(catalog_service.get_product(second.id).images) == 1
    assert asset_store.exists(foreign_url)
    assert len(catalog_service.get_product(first.id).images) == 1


def test_update_missing_product_returns_none(catalog_service, asset_store):
    assert catalog_service.update_product(product_id=424242, fields=_fields(), new_files=[_png()]) is None
    assert asset_store.list_files() == []


def test_update_removes_record_even_if_file_already_gone(catalog_service, asset_store):
    created = catalog_service.create_product(fields=_fields(), files=[_png()])
    image = created.images[0]
    asset_store.resolve(image.image_url).unlink()

    updated = catalog_service.update_product(product_id=created.id, fields=_fields(), remove_image_ids=[image.id])

    assert updated.images == []


def test_delete_removes_records_and_files(catalog_service, asset_store, db_session):
    created = catalog_service.create_product(fields=_fields(), files=[_png(), _png(), _png()])
    urls = [image.image_url for image in created.images]

    assert catalog_service.delete_product(created.id) is True

    assert catalog_service.get_product(created.id) is None
    assert db_session.query(ProductImage).filter(ProductImage.product_id == created.id).count() == 0
    assert all(not asset_store.exists(url) for url in urls)


def test_delete_still_removes_record_when_file_deletion_fails(catalog_service, asset_store, monkeypatch, db_session):
    created = catalog_service.create_product(fields=_fields(), files=[_png()])
    url = created.images[0].image_url

    def _deny(self, *args, **kwargs):
        raise PermissionError("denied")

    monkeypatch.setattr(Path, "unlink", _deny)

    assert catalog_service.delete_product(created.id) is True
    assert catalog_service.get_product(created.id) is None
    assert db_session.query(ProductImage).count() == 0
    monkeypatch.undo()
    assert asset_store.exists(url)


def test_delete_missing_product_returns_false(catalog_service):
    assert catalog_service.delete_product(31337) is False


def test_upload_images_reports_accepted_count(catalog_service):
    created = catalog_service.create_product(fields=_fields())

    result = catalog_service.upload_images(created.id, [_png(), UploadedFile(content=b"x", filename="a.bmp")])

    assert result.success is True
    assert result.message == "1 images uploaded successfully"
    assert len(result.image_urls) == 1
    assert len(result.rejected) == 1
    assert "a.bmp" in result.rejected[0]


def test_upload_images_all_rejected_is_a_failure(catalog_service):
    created = catalog_service.create_product(fields=_fields())

    result = catalog_service.upload_images(created.id, [UploadedFile(content=b"x", filename="a.pdf")])

    assert result.success is False
    assert result.not_found is False
    assert result.message == "No images were uploaded"
    assert catalog_service.get_product(created.id).images == []


def test_upload_images_to_missing_product(catalog_service, asset_store):
    result = catalog_service.upload_images(999, [_png()])

    assert result.success is False
    assert result.not_found is True
    assert result.message == "Product not found"
    assert asset_store.list_files() == []


def test_uploads_with_same_name_get_distinct_paths(catalog_service, asset_store):
    created = catalog_service.create_product(fields=_fields())

    first = catalog_service.upload_images(created.id, [_png("same.png")])
    second = catalog_service.upload_images(created.id, [_png("same.png")])

    assert first.image_urls[0] != second.image_urls[0]
    images = catalog_service.get_product(created.id).images
    assert {image.image_url for image in images} == {first.image_urls[0], second.image_urls[0]}
    assert all(asset_store.exists(image.image_url) for image in images)


def test_delete_image_is_reported_when_missing(catalog_service, asset_store):
    created = catalog_service.create_product(fields=_fields(), files=[_png()])
    image_id = created.images[0].id
    url = created.images[0].image_url

    first = catalog_service.delete_image(image_id)
    second = catalog_service.delete_image(image_id)

    assert first.success is True
    assert not asset_store.exists(url)
    assert second.success is False
    assert second.message == "Image not found"
    assert catalog_service.get_product(created.id).images == []


def test_list_is_newest_first_and_searches_case_insensitively(catalog_service):
    widget = catalog_service.create_product(fields=_fields(name="Blue Widget"))
    gadget = catalog_service.create_product(fields=_fields(name="Gadget"))
    widget_two = catalog_service.create_product(fields=_fields(name="WIDGET pro"))

    everything = catalog_service.list_products(page_number=1, page_size=50)
    assert [item.id for item in everything.items] == [widget_two.id, gadget.id, widget.id]
    assert everything.meta.total_count == 3

    found = catalog_service.list_products(page_number=1, page_size=50, search="wid")
    assert [item.id for item in found.items] == [widget_two.id, widget.id]
    assert found.meta.total_count == 2

    blank = catalog_service.list_products(page_number=1, page_size=50, search="   ")
    assert blank.meta.total_count == 3


def test_list_pages_through_results(catalog_service):
    for index in range(17):
        catalog_service.create_product(fields=_fields(name=f"Item {index}"))

    first = catalog_service.list_products(page_number=1, page_size=8)
    last = catalog_service.list_products(page_number=3, page_size=8)

    assert len(first.items) == 8
    assert first.meta.total_pages == 3
    assert first.meta.has_next_page and not first.meta.has_previous_page
    assert len(last.items) == 1
    assert last.meta.has_previous_page and not last.meta.has_next_page
    assert last.items[0].name == "Item 0"


def test_get_image_file_flags_missing_file_as_integrity_fault(catalog_service, asset_store):
    created = catalog_service.create_product(fields=_fields(), files=[_png()])
    url = created.images[0].image_url
    file_name = Path(url).name

    assert catalog_service.get_image_file(file_name) == asset_store.resolve(url)

    asset_store.resolve(url).unlink()
    with pytest.raises(exceptions.IntegrityFault):
        catalog_service.get_image_file(file_name)

    with pytest.raises(exceptions.NotFoundError):
        catalog_service.get_image_file("unknown.png")


def test_audit_reports_missing_and_orphaned_files(catalog_service, asset_store):
    created = catalog_service.create_product(fields=_fields(), files=[_png(), _png()])
    broken_url = created.images[0].image_url
    asset_store.resolve(broken_url).unlink()
    orphan_url = asset_store.save(PNG_BYTES, "orphan.png")

    audit = catalog_service.audit_assets()

    assert audit.missing_files == [broken_url]
    assert audit.orphaned_files == [orphan_url]
    assert audit.is_consistent is False


def test_product_rows_cascade_at_database_level(catalog_service, db_session):
    created = catalog_service.create_product(fields=_fields(), files=[_png()])

    db_session.expunge_all()
    db_session.query(Product).filter(Product.id == created.id).delete(synchronize_session=False)
    db_session.commit()

    assert db_session.query(ProductImage).count() == 0


def test_purge_orphans_keeps_recent_files(catalog_service, asset_store):
    catalog_service.create_product(fields=_fields(), files=[_png()])
    fresh_url = asset_store.save(PNG_BYTES, "fresh.png")
    stale_url = asset_store.save(PNG_BYTES, "stale.png")
    an_hour_ago = time.time() - 3600
    os.utime(asset_store.resolve(stale_url), (an_hour_ago, an_hour_ago))

    audit = catalog_service.audit_assets()
    removed = catalog_service.purge_orphans(audit.orphaned_files, min_age_seconds=600)

    assert removed == [stale_url]
    assert asset_store.exists(fresh_url)
    assert not asset_store.exists(stale_url)
    assert catalog_service.audit_assets().missing_files == []


def test_upload_rolls_back_and_cleans_files_when_database_fails(catalog_service, asset_store, db_session, monkeypatch):
    created = catalog_service.create_product(fields=_fields())

    def _fail(product_id, image_url):
        raise OperationalError("INSERT INTO product_images", {}, Exception("database is locked"))

    monkeypatch.setattr(catalog_service.repository, "insert_image", _fail)

    with pytest.raises(exceptions.StorageUnavailable):
        catalog_service.upload_images(created.id, [_png()])

    monkeypatch.undo()
    assert asset_store.list_files() == []
    assert db_session.query(ProductImage).count() == 0
    assert catalog_service.upload_images(created.id, [_png()]).success is True


def test_delete_image_rolls_back_when_database_fails(catalog_service, db_session, monkeypatch):
    created = catalog_service.create_product(fields=_fields(), files=[_png()])
    image_id = created.images[0].id

    def _fail(image):
        raise OperationalError("DELETE FROM product_images", {}, Exception("disk I/O error"))

    monkeypatch.setattr(catalog_service.repository, "remove_image", _fail)

    with pytest.raises(exceptions.StorageUnavailable):
        catalog_service.delete_image(image_id)

    monkeypatch.undo()
    assert db_session.query(ProductImage).filter(ProductImage.id == image_id).count() == 1
