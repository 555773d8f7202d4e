from fastapi import APIRouter, Depends

from myrevuhq.application.analytics import get_analytics
from myrevuhq.infrastructure.auth import AuthUser
from myrevuhq.infrastructure.persistence import Database

from ..deps import get_current_user, get_db

router = APIRouter(tags=["analytics"])


@router.get("/analytics")
def analytics(auth: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    return get_analytics(db, auth.user_id)
