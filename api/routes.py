"""
CRUD routes for the catalog resources.

Every resource family shares one set of handlers built by build_router();
a Resource describes the differences (envelope names, body schemas, field
rules, list parameters and, for nested resources, the parent).
"""

import re
from typing import Any, Callable, Dict, Optional, Tuple, Type

import structlog
from fastapi import APIRouter, Request, status
from pydantic import BaseModel
from starlette.datastructures import QueryParams

from api.models import (
    BookInput, BookUpdate, BookResponse,
    ProductInput, ProductUpdate, ProductResponse,
    ReviewInput, ReviewUpdate, ReviewResponse,
    UserInput, UserUpdate, UserResponse,
    validate_book, validate_product, validate_review, validate_user,
)
from api.responses import FailedValidationError, envelope
from storage.filters import Filters, validate_filters
from storage.repositories import RecordNotFoundError, Repositories, Repository
from utilities.validator import Validator

logger = structlog.get_logger(__name__)

ACTIONS = ("create", "show", "update", "delete", "list")


class Resource:
    """Description of one resource family exposed over HTTP."""

    def __init__(
        self,
        name: str,
        plural: str,
        repository: str,
        create_model: Type[BaseModel],
        update_model: Type[BaseModel],
        response_model: Type[BaseModel],
        validate: Callable[[Validator, Dict[str, Any]], None],
        sort_safelist: Tuple[str, ...],
        text_params: Tuple[str, ...] = (),
        int_params: Tuple[str, ...] = (),
        parent: Optional["Resource"] = None,
        scope_column: Optional[str] = None,
        actions: Tuple[str, ...] = ACTIONS,
    ):
        self.name = name
        self.plural = plural
        self.repository = repository
        self.create_model = create_model
        self.update_model = update_model
        self.response_model = response_model
        self.validate = validate
        self.sort_safelist = sort_safelist
        self.text_params = text_params
        self.int_params = int_params
        self.parent = parent
        self.scope_column = scope_column
        self.actions = actions

    @property
    def prefix(self) -> str:
        if self.parent is None:
            return f"/v1/{self.plural}"
        return f"{self.parent.prefix}/{{parent_id}}/{self.plural}"

    def serialize(self, record) -> Dict[str, Any]:
        return self.response_model.model_validate(record).model_dump(mode="json")


MAX_INTEGER = 2 ** 63 - 1
MIN_INTEGER = -2 ** 63

ID_PATTERN = re.compile(r"[0-9]+")
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def read_id_param(request: Request, name: str = "id") -> int:
    """
    Parse a positive integer id from the path.

    Raises:
        RecordNotFoundError: If the parameter is not a positive 64-bit integer
    """
    raw = request.path_params.get(name, "")
    if not ID_PATTERN.fullmatch(raw):
        raise RecordNotFoundError(name, raw)
    value = int(raw)
    if value < 1 or value > MAX_INTEGER:
        raise RecordNotFoundError(name, raw)
    return value


def read_string(query: QueryParams, key: str, default: str) -> str:
    value = query.get(key)
    return value if value else default


def read_int(query: QueryParams, key: str, default: int, v: Validator) -> int:
    """Parse a 64-bit integer query parameter, recording an error when it is not one."""
    value = query.get(key)
    if not value:
        return default
    if not INTEGER_PATTERN.fullmatch(value) or not MIN_INTEGER <= int(value) <= MAX_INTEGER:
        v.add_error(key, "must be an integer value")
        return default
    return int(value)


def build_router(resource: Resource) -> APIRouter:
    """Create the routes for the actions a resource supports."""
    router = APIRouter(prefix=resource.prefix, tags=[resource.plural])
    create_model = resource.create_model
    update_model = resource.update_model

    def repository(request: Request) -> Repository:
        repositories: Repositories = request.app.state.repositories
        return getattr(repositories, resource.repository)

    def scope_of(request: Request) -> Dict[str, int]:
        if resource.parent is None:
            return {}
        return {resource.scope_column: read_id_param(request, "parent_id")}

    async def ensure_parent(request: Request, scope: Dict[str, int]) -> None:
        if resource.parent is None:
            return
        repositories: Repositories = request.app.state.repositories
        parent_repo = getattr(repositories, resource.parent.repository)
        parent_id = scope[resource.scope_column]
        if not await parent_repo.exists(parent_id):
            raise RecordNotFoundError(parent_repo.table, parent_id)

    def check(fields: Dict[str, Any]) -> None:
        v = Validator()
        resource.validate(v, fields)
        if not v.is_empty():
            raise FailedValidationError(v.errors)

    async def create_record(request: Request, payload: create_model):
        scope = scope_of(request)
        fields = payload.model_dump()
        check(fields)
        await ensure_parent(request, scope)

        record = await repository(request).insert({**fields, **scope})
        logger.info("Record created", resource=resource.name, id=record.id)

        location = f"{request.url.path.rstrip('/')}/{record.id}"
        return envelope(
            status.HTTP_201_CREATED,
            {resource.name: resource.serialize(record)},
            headers={"Location": location},
        )

    async def show_record(request: Request):
        scope = scope_of(request)
        record = await repository(request).get(read_id_param(request), **scope)
        return envelope(status.HTTP_200_OK, {resource.name: resource.serialize(record)})

    async def update_record(request: Request, payload: update_model):
        scope = scope_of(request)
        repo = repository(request)
        record = await repo.get(read_id_param(request), **scope)

        for field, value in payload.model_dump(exclude_none=True).items():
            setattr(record, field, value)
        check({column: getattr(record, column) for column in repo.writable_columns})

        record = await repo.update(record)
        return envelope(status.HTTP_200_OK, {resource.name: resource.serialize(record)})

    async def delete_record(request: Request):
        scope = scope_of(request)
        await repository(request).delete(read_id_param(request), **scope)
        return envelope(status.HTTP_200_OK, {"message": f"{resource.name} successfully deleted"})

    async def list_records(request: Request):
        scope = scope_of(request)
        query = request.query_params
        v = Validator()

        search: Dict[str, Any] = {key: read_string(query, key, "") for key in resource.text_params}
        for key in resource.int_params:
            search[key] = read_int(query, key, 0, v)

        filters = Filters(
            page=read_int(query, "page", 1, v),
            page_size=read_int(query, "page_size", 10, v),
            sort=read_string(query, "sort", "id"),
            sort_safelist=list(resource.sort_safelist),
        )
        validate_filters(v, filters)
        if not v.is_empty():
            raise FailedValidationError(v.errors)
        await ensure_parent(request, scope)

        records, metadata = await repository(request).get_all(search, filters, **scope)
        return envelope(status.HTTP_200_OK, {
            resource.plural: [resource.serialize(record) for record in records],
            "metadata": metadata.to_dict(),
        })

    routes = {
        "create": ("", create_record, "POST", status.HTTP_201_CREATED),
        "show": ("/{id}", show_record, "GET", status.HTTP_200_OK),
        "update": ("/{id}", update_record, "PATCH", status.HTTP_200_OK),
        "delete": ("/{id}", delete_record, "DELETE", status.HTTP_200_OK),
        "list": ("", list_records, "GET", status.HTTP_200_OK),
    }
    for action in ACTIONS:
        if action not in resource.actions:
            continue
        path, endpoint, method, status_code = routes[action]
        router.add_api_route(path, endpoint, methods=[method], status_code=status_code)

    return router


BOOKS = Resource(
    name="book",
    plural="books",
    repository="books",
    create_model=BookInput,
    update_model=BookUpdate,
    response_model=BookResponse,
    validate=validate_book,
    sort_safelist=("id", "title", "author", "-id", "-title", "-author"),
    text_params=("title", "author"),
)

PRODUCTS = Resource(
    name="product",
    plural="products",
    repository="products",
    create_model=ProductInput,
    update_model=ProductUpdate,
    response_model=ProductResponse,
    validate=validate_product,
    sort_safelist=("id", "name", "category", "-id", "-name", "-category"),
    text_params=("name", "category"),
)

BOOK_REVIEWS = Resource(
    name="review",
    plural="reviews",
    repository="reviews",
    create_model=ReviewInput,
    update_model=ReviewUpdate,
    response_model=ReviewResponse,
    validate=validate_review,
    sort_safelist=("id", "author", "rating", "helpful_count",
                   "-id", "-author", "-rating", "-helpful_count"),
    text_params=("content", "author"),
    int_params=("rating",),
    parent=BOOKS,
    scope_column="product_id",
)

# Reviews of every parent, readable only
REVIEWS = Resource(
    name="review",
    plural="reviews",
    repository="reviews",
    create_model=ReviewInput,
    update_model=ReviewUpdate,
    response_model=ReviewResponse,
    validate=validate_review,
    sort_safelist=BOOK_REVIEWS.sort_safelist,
    text_params=BOOK_REVIEWS.text_params,
    int_params=BOOK_REVIEWS.int_params,
    actions=("list",),
)

USERS = Resource(
    name="user",
    plural="users",
    repository="users",
    create_model=UserInput,
    update_model=UserUpdate,
    response_model=UserResponse,
    validate=validate_user,
    sort_safelist=("id", "email", "full_name", "-id", "-email", "-full_name"),
    text_params=("email", "full_name"),
)

RESOURCES = (BOOKS, PRODUCTS, BOOK_REVIEWS, REVIEWS, USERS)

router = APIRouter()
for _resource in RESOURCES:
    router.include_router(build_router(_resource))
