from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from auth.utils import SessionUser, get_current_user
from mailer.service import EmailService, get_email_service
from services.trial_service import build_trial_status
from storage import Storage, get_storage

router = APIRouter(tags=["trial"])


@router.get("/trial-status")
def trial_status(
    background_tasks: BackgroundTasks,
    feature: str | None = Query(default=None),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    email_service: EmailService = Depends(get_email_service),
):
    payload = build_trial_status(
        storage,
        user,
        email_service=email_service,
        background_tasks=background_tasks,
        feature=feature,
    )
    if payload is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User profile not found")
    return payload
