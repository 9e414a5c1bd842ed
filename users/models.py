"""
Typed request and response models for the user directory.

Request models are the validated query specifications the engine consumes;
response models are what the list, cursor and bulk operations return.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from users.constants import (
    DEFAULT_CURSOR_LIMIT,
    DEFAULT_PAGE_SIZE,
    DEFAULT_SORT,
    MAX_BULK_BATCH,
    MAX_CURSOR_LIMIT,
    MAX_PAGE_SIZE,
    MIN_BULK_BATCH,
)


# Pydantic models for API requests
class UserListQuery(BaseModel):
    """Offset-paginated list request."""
    model_config = ConfigDict(populate_by_name=True)

    page: int = Field(1, ge=1)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize")
    sort: str = DEFAULT_SORT
    visibility: Literal["basic", "admin", "custom"] = Field("basic", alias="fields")
    custom_fields: Optional[str] = Field(None, alias="customFields")  # comma-separated
    include_deleted: bool = Field(False, alias="includeDeleted")

    # Query operators
    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    phone: Optional[str] = None

    # Advanced query operators
    age_in: Optional[str] = Field(None, alias="ageIn")  # comma-separated values
    age_nin: Optional[str] = Field(None, alias="ageNin")  # comma-separated values
    name_regex: Optional[str] = Field(None, alias="nameRegex")
    has_phone: Optional[bool] = Field(None, alias="hasPhone")

    # Text search
    q: Optional[str] = None


class CursorQuery(BaseModel):
    limit: int = Field(DEFAULT_CURSOR_LIMIT, ge=1, le=MAX_CURSOR_LIMIT)
    after: Optional[str] = None


def _check_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError('name must not be blank')
    return value


def _check_email(value: str) -> str:
    value = value.strip()
    local, sep, domain = value.partition('@')
    if not sep or not local or '.' not in domain:
        raise ValueError('email must look like name@domain.tld')
    return value


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    age: int = Field(..., ge=0, le=150)
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        return _check_name(v)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return _check_email(v)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    age: Optional[int] = Field(None, ge=0, le=150)
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        if v is None:
            return v
        return _check_name(v)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v is None:
            return v
        return _check_email(v)


class SoftDelete(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    delete_reason: Optional[str] = Field(None, min_length=1, alias="deleteReason")
    deleted_by: Optional[str] = Field(None, min_length=1, alias="deletedBy")


class BulkUpsertRequest(BaseModel):
    users: List[UserCreate] = Field(..., min_length=MIN_BULK_BATCH, max_length=MAX_BULK_BATCH)


# Response models
class PageMeta(BaseModel):
    total: int
    page: int
    pageSize: int
    totalPages: int
    hasNextPage: bool
    hasPrevPage: bool


class PagedResult(BaseModel):
    data: List[Dict[str, Any]]
    meta: PageMeta


class CursorPageInfo(BaseModel):
    endCursor: Optional[str] = None
    hasNextPage: bool


class CursorPage(BaseModel):
    items: List[Dict[str, Any]]
    pageInfo: CursorPageInfo


class BulkUpsertResult(BaseModel):
    matched: int
    modified: int
    upserted: int
    # Reserved: always empty, a failing batch raises instead
    errors: List[Dict[str, Any]] = Field(default_factory=list)
