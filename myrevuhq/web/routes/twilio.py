"""Twilio webhooks (form-encoded). Both always answer 200 unless fields are missing."""

from typing import Optional

from fastapi import APIRouter, Form, Request, Response

from myrevuhq.application.inbound import InboundSmsHandler

router = APIRouter(prefix="/twilio", tags=["twilio"])


def _handler(request: Request) -> InboundSmsHandler:
    return request.app.state.inbound


@router.get("/status-callback")
def status_callback_probe():
    return {
        "message": "Status callback webhook is accessible",
        "endpoint": "/api/twilio/status-callback",
        "method": "POST",
    }


@router.post("/status-callback")
def status_callback(
    request: Request,
    MessageSid: Optional[str] = Form(default=None),
    MessageStatus: Optional[str] = Form(default=None),
    ErrorCode: Optional[str] = Form(default=None),
    ErrorMessage: Optional[str] = Form(default=None),
):
    return _handler(request).handle_status(MessageSid, MessageStatus, ErrorCode, ErrorMessage)


@router.post("/sms-webhook")
def sms_webhook(
    request: Request,
    From: Optional[str] = Form(default=None),
    Body: Optional[str] = Form(default=None),
):
    twiml = _handler(request).handle_incoming(From, Body)
    return Response(content=twiml, media_type="text/xml")
