"""
Customer Use Cases - Listing and Spreadsheet Import
===================================================

Single creates, updates and deletes are thin enough to live in the
router; listing joins in each customer's message history and imports
validate and de-duplicate a whole file.
"""

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from myrevuhq.domain.phone import normalize_to_e164
from myrevuhq.infrastructure.importer import ExcelParser
from myrevuhq.infrastructure.persistence import Database

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_JOB_DESCRIPTION_LENGTH = 250


def list_customers(
    db: Database,
    user_id: str,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    first_letter: Optional[str] = None,
) -> Dict[str, Any]:
    """One page of customers with their sends, plus filtered and unfiltered totals."""
    customers, total = db.list_customers(user_id, page, limit, status, first_letter)

    items = []
    for customer in customers:
        item = asdict(customer)
        item["messages"] = [
            {"sent_at": m.sent_at, "was_scheduled": m.was_scheduled}
            for m in db.get_customer_messages(customer.id)
        ]
        items.append(item)

    return {
        "customers": items,
        "total": total,
        "totalCount": db.count_customers(user_id),
    }


def _row_error(row: Dict[str, Any]) -> Optional[str]:
    if len(row["name"]) < MIN_NAME_LENGTH:
        return f"Name must be at least {MIN_NAME_LENGTH} characters"
    if len(row.get("job_description") or "") > MAX_JOB_DESCRIPTION_LENGTH:
        return f"Job description must be {MAX_JOB_DESCRIPTION_LENGTH} characters or less"
    return None


def import_customers(
    db: Database,
    user_id: str,
    content: bytes,
    filename: str,
    default_country: str = "GB",
) -> Dict[str, Any]:
    """
    Bulk-create customers from a CSV/XLSX upload.

    Rows missing a name or phone, and numbers the user already has, are
    skipped. Rows that fail validation are reported in `errors` with their
    1-based spreadsheet row number (header is row 1).

    Raises:
        ImportFormatError: unreadable file or undetectable columns
    """
    parser = ExcelParser()
    rows, incomplete = parser.parse_bytes(content, filename, default_country)

    known = {
        normalize_to_e164(c.phone_number, c.country_code)
        for c in db.get_all_customers(user_id)
    }
    known.discard(None)

    to_add: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    skipped = incomplete

    for row in rows:
        problem = _row_error(row)
        if problem:
            errors.append({"row": row["row"], "name": row["name"], "error": problem})
            continue

        e164 = normalize_to_e164(row["phone"]["number"], row["phone"]["countryCode"])
        if not e164:
            errors.append({"row": row["row"], "name": row["name"], "error": "Invalid phone number"})
            continue

        if e164 in known:
            skipped += 1
            continue

        known.add(e164)
        to_add.append(row)

    added = db.bulk_add_customers(user_id, to_add) if to_add else 0
    logger.info(
        f"[Import] User {user_id}: {added} added, {skipped} skipped, {len(errors)} errors "
        f"(columns {parser.detected_columns})"
    )
    return {"added": added, "skipped": skipped, "errors": errors}
