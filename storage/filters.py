"""
Pagination and sorting filters shared by every list endpoint.
"""

from typing import List

import structlog
from pydantic import BaseModel, Field

from utilities.validator import Validator, permitted_value

logger = structlog.get_logger(__name__)

MAX_PAGE = 500
MAX_PAGE_SIZE = 100


class UnsafeSortError(ValueError):
    """Raised when a sort token outside the safelist reaches query building."""

    def __init__(self, sort: str):
        self.sort = sort
        super().__init__(f"unsafe sort parameter: {sort}")


class Filters(BaseModel):
    """Pagination and sort request for a list query."""
    page: int = Field(1, description="Page number requested by the client")
    page_size: int = Field(10, description="Number of records per page")
    sort: str = Field("id", description="Sort column, prefixed with '-' for descending")
    sort_safelist: List[str] = Field(default_factory=list, description="Permitted sort values")

    def limit(self) -> int:
        return self.page_size

    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def sort_column(self) -> str:
        """
        Column to order by, with any leading '-' removed.

        Raises:
            UnsafeSortError: If the sort value is not in the safelist
        """
        if self.sort in self.sort_safelist:
            return self.sort.removeprefix("-")
        logger.error("Unsafe sort parameter reached query building", sort=self.sort,
                     safelist=self.sort_safelist)
        raise UnsafeSortError(self.sort)

    def sort_direction(self) -> str:
        return "DESC" if self.sort.startswith("-") else "ASC"


class Metadata(BaseModel):
    """Pagination metadata returned alongside list results."""
    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0

    def to_dict(self) -> dict:
        """Serialise, omitting zero fields."""
        return self.model_dump(exclude_defaults=True)


def validate_filters(v: Validator, f: Filters) -> None:
    """Check pagination bounds and the sort value against the safelist."""
    v.check(f.page > 0, "page", "must be greater than zero")
    v.check(f.page <= MAX_PAGE, "page", f"must not exceed {MAX_PAGE}")
    v.check(f.page_size > 0, "page_size", "must be greater than zero")
    v.check(f.page_size <= MAX_PAGE_SIZE, "page_size", f"must be a maximum of {MAX_PAGE_SIZE}")
    v.check(permitted_value(f.sort, *f.sort_safelist), "sort", "invalid sort value")


def calculate_metadata(total_records: int, current_page: int, page_size: int) -> Metadata:
    if total_records == 0:
        return Metadata()

    return Metadata(
        current_page=current_page,
        page_size=page_size,
        first_page=1,
        last_page=(total_records + page_size - 1) // page_size,
        total_records=total_records,
    )
