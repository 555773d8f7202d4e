"""Customer CRUD and spreadsheet import for the signed-in owner."""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from myrevuhq.application import customers as customer_cases
from myrevuhq.application.errors import NotFoundError, ValidationError
from myrevuhq.domain.models import to_iso
from myrevuhq.infrastructure.auth import AuthUser
from myrevuhq.infrastructure.persistence import Database

from ..deps import get_current_user, get_db
from ..schemas import CustomerCreate, CustomerUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("")
def list_customers(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status: Optional[str] = None,
    firstLetter: Optional[str] = None,
    auth: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return customer_cases.list_customers(db, auth.user_id, page, limit, status, firstLetter)


@router.post("", status_code=201)
def create_customer(
    body: CustomerCreate,
    auth: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    job = (body.jobDescription or "").strip() or None
    customer = db.add_customer(
        auth.user_id,
        body.name,
        body.phone.model_dump(),
        job_description=job,
        scheduled_send_at=to_iso(body.scheduledSendAt) if body.scheduledSendAt else None,
    )
    logger.info(f"Customer {customer.id} added for user {auth.user_id} ({customer.sms_status})")
    return asdict(customer)


@router.post("/import")
async def import_customers(
    file: UploadFile = File(...),
    defaultCountry: str = Form(default="GB"),
    auth: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Bulk import from .csv/.xlsx/.xls."""
    if not file.filename:
        raise ValidationError("No file selected")
    content = await file.read()
    return customer_cases.import_customers(
        db, auth.user_id, content, file.filename, defaultCountry or "GB"
    )


@router.put("/{customer_id}")
def update_customer(
    customer_id: str,
    body: CustomerUpdate,
    auth: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not db.get_customer(customer_id, user_id=auth.user_id):
        raise NotFoundError("Customer not found")

    updates = {}
    if body.name:
        updates["name"] = body.name
    if body.phone:
        updates["phone"] = body.phone.model_dump()
    if "jobDescription" in body.model_fields_set:
        updates["job_description"] = body.jobDescription or None

    return asdict(db.update_customer(customer_id, **updates))


@router.delete("/{customer_id}", status_code=204)
def delete_customer(
    customer_id: str,
    auth: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not db.delete_customer(customer_id, auth.user_id):
        raise NotFoundError("Customer not found")
    return Response(status_code=204)
