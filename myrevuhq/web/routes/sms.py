from fastapi import APIRouter, Depends, Request

from myrevuhq.infrastructure.auth import AuthUser

from ..deps import get_current_user
from ..schemas import SendSmsRequest

router = APIRouter(tags=["sms"])


@router.post("/send-sms")
def send_sms(
    body: SendSmsRequest,
    request: Request,
    auth: AuthUser = Depends(get_current_user),
):
    """Send the review request to one customer now."""
    result = request.app.state.sender.send(auth.user_id, str(body.customerId))
    return result.to_dict()
