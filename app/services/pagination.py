import math
from dataclasses import dataclass


@dataclass(frozen=True)
class PageMeta:
    total_count: int
    total_pages: int
    current_page: int
    page_size: int
    has_previous_page: bool
    has_next_page: bool


def build_page_meta(total_count: int, page_number: int, page_size: int) -> PageMeta:
    """Derive page metadata. Page arguments are expected to be clamped already."""

    total_pages = math.ceil(total_count / page_size) if total_count > 0 else 0
    return PageMeta(
        total_count=total_count,
        total_pages=total_pages,
        current_page=page_number,
        page_size=page_size,
        has_previous_page=page_number > 1,
        has_next_page=total_count > 0 and page_number < total_pages,
    )
