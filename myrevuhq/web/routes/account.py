"""Read and update the signed-in owner's account settings."""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from myrevuhq.infrastructure.auth import AuthUser
from myrevuhq.infrastructure.persistence import Database

from ..deps import get_current_user, get_db
from ..schemas import AccountUpdate

router = APIRouter(tags=["account"])

# Columns that may be cleared; for the rest null means "leave as is"
NULLABLE_FIELDS = {"business_name", "sms_template"}


@router.get("/account")
def get_account(auth: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    """Profile of the signed-in user, created on first visit."""
    user = db.get_user(auth.user_id) or db.create_user(auth.user_id, auth.email)
    return asdict(user)


@router.put("/account")
def update_account(
    body: AccountUpdate,
    auth: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not db.get_user(auth.user_id):
        db.create_user(auth.user_id, auth.email)
    updates = {
        key: value
        for key, value in body.model_dump(exclude_unset=True).items()
        if value is not None or key in NULLABLE_FIELDS
    }
    user = db.update_user(auth.user_id, **updates)
    return asdict(user)
