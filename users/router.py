from typing import Any, Optional

from bson import ObjectId
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response
from fastapi.encoders import jsonable_encoder

from mongo.client import mongo_connection
from users.constants import DEFAULT_CURSOR_LIMIT, DEFAULT_PAGE_SIZE, DEFAULT_SORT, MAX_CURSOR_LIMIT, MAX_PAGE_SIZE
from users.errors import ConflictError, NotFoundError, UserServiceError, ValidationError
from users.models import BulkUpsertRequest, CursorQuery, SoftDelete, UserCreate, UserListQuery, UserUpdate
from users.service import UserService
from users.store import MongoRecordStore

router = APIRouter(prefix="/users", tags=["users"])


async def get_user_service() -> UserService:
    """Build a service over the shared Motor connection."""
    collection = await mongo_connection.get_collection()
    return UserService(MongoRecordStore(collection))


def _to_json(payload: Any) -> Any:
    """Render ObjectIds and datetimes as strings."""
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump()
    return jsonable_encoder(payload, custom_encoder={ObjectId: str})


def _http_error(error: UserServiceError) -> HTTPException:
    if isinstance(error, ValidationError):
        detail = {"message": error.message}
        if error.invalid:
            detail["invalid"] = error.invalid
        if error.allowed:
            detail["allowed"] = error.allowed
        return HTTPException(status_code=400, detail=detail)
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ConflictError):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


@router.post("", status_code=201)
async def create_user(req: UserCreate, service: UserService = Depends(get_user_service)):
    try:
        return _to_json(await service.create(req))
    except UserServiceError as e:
        raise _http_error(e) from e


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    pageSize: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort: str = Query(DEFAULT_SORT, description="Comma-separated field:direction pairs, 1 ascending"),
    fields: str = Query("basic", pattern="^(basic|admin|custom)$"),
    customFields: Optional[str] = Query(None, description="Comma-separated fields when fields=custom"),
    includeDeleted: bool = Query(False),
    name: Optional[str] = None,
    email: Optional[str] = None,
    age: Optional[int] = None,
    phone: Optional[str] = None,
    ageIn: Optional[str] = Query(None, description="Comma-separated ages"),
    ageNin: Optional[str] = Query(None, description="Comma-separated ages"),
    nameRegex: Optional[str] = None,
    hasPhone: Optional[bool] = None,
    q: Optional[str] = Query(None, description="Free-text search"),
    service: UserService = Depends(get_user_service),
):
    """
    List users with offset pagination.

    Precedence inside a filter group: nameRegex over name, ageIn over ageNin
    over age, hasPhone over phone.
    """
    query = UserListQuery(
        page=page,
        pageSize=pageSize,
        sort=sort,
        fields=fields,
        customFields=customFields,
        includeDeleted=includeDeleted,
        name=name,
        email=email,
        age=age,
        phone=phone,
        ageIn=ageIn,
        ageNin=ageNin,
        nameRegex=nameRegex,
        hasPhone=hasPhone,
        q=q,
    )
    try:
        return _to_json(await service.resolve_paged_list(query))
    except UserServiceError as e:
        raise _http_error(e) from e


@router.get("/cursor")
async def list_users_by_cursor(
    limit: int = Query(DEFAULT_CURSOR_LIMIT, ge=1, le=MAX_CURSOR_LIMIT),
    after: Optional[str] = Query(None, description="endCursor from the previous page"),
    service: UserService = Depends(get_user_service),
):
    try:
        return _to_json(await service.resolve_cursor_list(CursorQuery(limit=limit, after=after)))
    except UserServiceError as e:
        raise _http_error(e) from e


@router.get("/search")
async def search_users(q: Optional[str] = None, service: UserService = Depends(get_user_service)):
    try:
        return _to_json(await service.search(q))
    except UserServiceError as e:
        raise _http_error(e) from e


@router.get("/stats")
async def user_stats(service: UserService = Depends(get_user_service)):
    return _to_json(await service.compute_stats())


@router.post("/bulk-upsert")
async def bulk_upsert_users(req: BulkUpsertRequest, service: UserService = Depends(get_user_service)):
    try:
        return _to_json(await service.bulk_upsert(req.users))
    except UserServiceError as e:
        raise _http_error(e) from e


@router.get("/{user_id}")
async def get_user(user_id: str, service: UserService = Depends(get_user_service)):
    try:
        return _to_json(await service.find_one(user_id))
    except UserServiceError as e:
        raise _http_error(e) from e


@router.patch("/{user_id}")
async def update_user(user_id: str, req: UserUpdate, service: UserService = Depends(get_user_service)):
    try:
        return _to_json(await service.update(user_id, req))
    except UserServiceError as e:
        raise _http_error(e) from e


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    req: Optional[SoftDelete] = Body(None),
    service: UserService = Depends(get_user_service),
):
    try:
        await service.remove(user_id, req)
    except UserServiceError as e:
        raise _http_error(e) from e
    return Response(status_code=204)


@router.post("/{user_id}/restore")
async def restore_user(user_id: str, service: UserService = Depends(get_user_service)):
    try:
        return _to_json(await service.restore(user_id))
    except UserServiceError as e:
        raise _http_error(e) from e
