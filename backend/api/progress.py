from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import ValidationError

from api.deps import parse_id, parse_range_bound, require_owned, validation_error
from auth.utils import SessionUser, ensure_owner, get_current_user
from storage import Storage, get_storage

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("")
def list_progress(
    user_id: str | None = Query(default=None, alias="userId"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    if user.is_admin:
        return []
    owner_id = ensure_owner(user, user_id)
    if start_date and end_date:
        start = parse_range_bound(start_date).date()
        end = parse_range_bound(end_date, end=True).date()
        return storage.get_progress_entries_by_date_range(owner_id, start, end)
    return storage.get_progress_entries_by_user_id(owner_id)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_progress(
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    ensure_owner(user, payload.get("userId", payload.get("user_id")))
    try:
        return storage.create_progress_entry(payload)
    except ValidationError as exc:
        raise validation_error("Invalid progress entry data", exc)


@router.patch("/{entry_id}")
def update_progress(
    entry_id: str,
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    entry_pk = parse_id(entry_id)
    require_owned(user, storage.get_progress_entry(entry_pk), "Progress entry not found")
    try:
        updated = storage.update_progress_entry(entry_pk, payload)
    except ValidationError as exc:
        raise validation_error("Invalid progress entry data", exc)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Progress entry not found")
    return updated


@router.delete("/{entry_id}")
def delete_progress(
    entry_id: str,
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    entry_pk = parse_id(entry_id)
    require_owned(user, storage.get_progress_entry(entry_pk), "Progress entry not found")
    if not storage.delete_progress_entry(entry_pk):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Progress entry not found")
    return {"message": "Progress entry deleted successfully"}
