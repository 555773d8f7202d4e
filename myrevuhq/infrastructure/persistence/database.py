"""
SQLite Database Repository - Users, Customers and Messages
==========================================================

Stores every row per owner (user_id) so each business only sees its own
customers. Phone numbers and review links are JSON text columns.
"""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from myrevuhq.domain.models import Customer, Message, SmsStatus, User, to_iso, utc_now

logger = logging.getLogger(__name__)

DATABASE_FILE = "myrevuhq.db"

USER_COLUMNS = {
    "email", "business_name", "review_links", "sms_template", "include_name_in_sms",
    "include_job_in_sms", "onboarding_completed", "sms_sent_this_month", "sms_sent_total",
    "subscription_tier", "access_status", "account_status", "payment_method",
    "stripe_customer_id", "stripe_subscription_id", "subscription_start_date",
    "current_period_end",
}

CUSTOMER_COLUMNS = {
    "name", "phone", "job_description", "sms_status", "scheduled_send_at", "sent_at",
    "sms_request_count", "opt_out",
}

MESSAGE_COLUMNS = {
    "delivery_status", "delivery_error_code", "delivery_error_message",
}

JSON_COLUMNS = {"review_links", "phone"}


def _encode(column: str, value):
    if column in JSON_COLUMNS:
        return json.dumps(value)
    if isinstance(value, bool):
        return int(value)
    return value


class Database:
    """
    SQLite database for MyRevuHQ.

    Usage:
        db = Database("myrevuhq.db")
        db.init()

        user = db.create_user("auth-user-id", "owner@example.com")
        customer = db.add_customer(user.id, "Sayyam", {"countryCode": "GB", "number": "07780587666"})
    """

    def __init__(self, db_path: Union[str, Path] = DATABASE_FILE):
        self.db_path = str(db_path)

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init(self):
        """Initialize database tables."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL DEFAULT '',
                    business_name TEXT,
                    review_links TEXT NOT NULL DEFAULT '[]',
                    sms_template TEXT,
                    include_name_in_sms INTEGER NOT NULL DEFAULT 1,
                    include_job_in_sms INTEGER NOT NULL DEFAULT 1,
                    onboarding_completed INTEGER NOT NULL DEFAULT 0,
                    sms_sent_this_month INTEGER NOT NULL DEFAULT 0,
                    sms_sent_total INTEGER NOT NULL DEFAULT 0,
                    subscription_tier TEXT,
                    access_status TEXT NOT NULL DEFAULT 'inactive',
                    account_status TEXT NOT NULL DEFAULT 'active',
                    payment_method TEXT,
                    stripe_customer_id TEXT,
                    stripe_subscription_id TEXT,
                    subscription_start_date TEXT,
                    current_period_end TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS customers (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    job_description TEXT,
                    sms_status TEXT NOT NULL DEFAULT 'pending',
                    scheduled_send_at TEXT,
                    sent_at TEXT,
                    sms_request_count INTEGER NOT NULL DEFAULT 0,
                    opt_out INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_customers_schedule "
                "ON customers (sms_status, scheduled_send_at)"
            )

            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    customer_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    body TEXT NOT NULL,
                    sent_at TEXT NOT NULL,
                    was_scheduled INTEGER NOT NULL DEFAULT 0,
                    twilio_message_sid TEXT,
                    delivery_status TEXT NOT NULL DEFAULT 'queued',
                    delivery_error_code TEXT,
                    delivery_error_message TEXT,
                    updated_at TEXT
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_sid ON messages (twilio_message_sid)"
            )

            logger.info(f"Database initialized: {self.db_path}")

    # ── User CRUD ──────────────────────────────────────────────────

    def create_user(self, user_id: str, email: str = "") -> User:
        """Create a profile for an auth provider user (no-op if it exists)."""
        now = to_iso(utc_now())
        with self._get_connection() as conn:
            conn.execute(
                """INSERT OR IGNORE INTO users (id, email, created_at, updated_at)
                   VALUES (?, ?, ?, ?)""",
                (user_id, email or "", now, now)
            )
        return self.get_user(user_id)

    def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
            return self._row_to_user(row) if row else None

    def get_user_by_stripe_customer(self, stripe_customer_id: str) -> Optional[User]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE stripe_customer_id = ?", (stripe_customer_id,)
            ).fetchone()
            return self._row_to_user(row) if row else None

    def update_user(self, user_id: str, **updates) -> Optional[User]:
        """Update user fields. Unknown columns raise ValueError."""
        if updates:
            self._update("users", USER_COLUMNS, user_id, updates)
        return self.get_user(user_id)

    def increment_sms_counters(self, user_id: str) -> Tuple[int, int]:
        """Bump monthly and lifetime SMS counters. Returns the new values."""
        with self._get_connection() as conn:
            conn.execute(
                """UPDATE users
                   SET sms_sent_this_month = sms_sent_this_month + 1,
                       sms_sent_total = sms_sent_total + 1,
                       updated_at = ?
                   WHERE id = ?""",
                (to_iso(utc_now()), user_id)
            )
            row = conn.execute(
                "SELECT sms_sent_this_month, sms_sent_total FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return (row[0], row[1]) if row else (0, 0)

    def reset_monthly_sms_counts(self) -> int:
        """Zero every user's monthly counter. Returns affected rows."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE users SET sms_sent_this_month = 0, updated_at = ? WHERE sms_sent_this_month != 0",
                (to_iso(utc_now()),)
            )
            count = cursor.rowcount
        logger.info(f"Reset monthly SMS counts for {count} users")
        return count

    # ── Customer CRUD ──────────────────────────────────────────────

    def add_customer(
        self,
        user_id: str,
        name: str,
        phone: Dict[str, str],
        job_description: Optional[str] = None,
        scheduled_send_at: Optional[str] = None,
    ) -> Customer:
        """Add a new customer. Scheduled customers wait for the dispatcher."""
        customer_id = str(uuid.uuid4())
        now = to_iso(utc_now())
        status = SmsStatus.SCHEDULED.value if scheduled_send_at else SmsStatus.PENDING.value
        with self._get_connection() as conn:
            conn.execute(
                """INSERT INTO customers
                   (id, user_id, name, phone, job_description, sms_status,
                    scheduled_send_at, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (customer_id, user_id, name, json.dumps(phone), job_description,
                 status, scheduled_send_at, now, now)
            )
        return self.get_customer(customer_id)

    def bulk_add_customers(self, user_id: str, customers: Iterable[dict]) -> int:
        """
        Insert many customers in one transaction.

        Args:
            user_id: Owner user ID
            customers: dicts with 'name', 'phone' and optional 'job_description'

        Returns:
            Number of rows inserted
        """
        now = to_iso(utc_now())
        rows = [
            (str(uuid.uuid4()), user_id, c["name"], json.dumps(c["phone"]),
             c.get("job_description"), SmsStatus.PENDING.value, now, now)
            for c in customers
        ]
        with self._get_connection() as conn:
            conn.executemany(
                """INSERT INTO customers
                   (id, user_id, name, phone, job_description, sms_status, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                rows
            )
        logger.info(f"Bulk import for user {user_id}: {len(rows)} added")
        return len(rows)

    def get_customer(self, customer_id: str, user_id: Optional[str] = None) -> Optional[Customer]:
        """Get customer by ID, optionally scoped to an owner."""
        with self._get_connection() as conn:
            if user_id is not None:
                row = conn.execute(
                    "SELECT * FROM customers WHERE id = ? AND user_id = ?", (customer_id, user_id)
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT * FROM customers WHERE id = ?", (customer_id,)
                ).fetchone()
            return self._row_to_customer(row) if row else None

    def list_customers(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        first_letter: Optional[str] = None,
    ) -> Tuple[List[Customer], int]:
        """
        Page through a user's customers, newest first.

        Returns:
            (customers on this page, number of customers matching the filters)
        """
        where = ["user_id = ?"]
        params: list = [user_id]
        if status:
            where.append("sms_status = ?")
            params.append(status)
        if first_letter and len(first_letter) == 1:
            # LIKE is case-insensitive for ASCII in SQLite
            where.append("name LIKE ?")
            params.append(f"{first_letter.upper()}%")

        clause = " AND ".join(where)
        offset = (max(page, 1) - 1) * limit

        with self._get_connection() as conn:
            total = conn.execute(
                f"SELECT COUNT(*) FROM customers WHERE {clause}", params
            ).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM customers WHERE {clause} "
                f"ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                params + [limit, offset]
            ).fetchall()
        return [self._row_to_customer(row) for row in rows], total

    def count_customers(self, user_id: str) -> int:
        with self._get_connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM customers WHERE user_id = ?", (user_id,)
            ).fetchone()[0]

    def get_all_customers(self, user_id: Optional[str] = None) -> List[Customer]:
        """Get all customers, optionally filtered by user."""
        with self._get_connection() as conn:
            if user_id is not None:
                rows = conn.execute(
                    "SELECT * FROM customers WHERE user_id = ? ORDER BY created_at", (user_id,)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM customers ORDER BY created_at").fetchall()
            return [self._row_to_customer(row) for row in rows]

    def get_customers_by_ids(self, user_id: str, customer_ids: List[str]) -> List[Customer]:
        if not customer_ids:
            return []
        placeholders = ", ".join("?" for _ in customer_ids)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM customers WHERE user_id = ? AND id IN ({placeholders})",
                [user_id] + list(customer_ids)
            ).fetchall()
            return [self._row_to_customer(row) for row in rows]

    def get_due_scheduled_customers(self, now_iso: str, limit: int = 50) -> List[Customer]:
        """Scheduled customers whose send time has passed, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """SELECT * FROM customers
                   WHERE sms_status = ?
                     AND scheduled_send_at IS NOT NULL
                     AND scheduled_send_at <= ?
                   ORDER BY scheduled_send_at
                   LIMIT ?""",
                (SmsStatus.SCHEDULED.value, now_iso, limit)
            ).fetchall()
            return [self._row_to_customer(row) for row in rows]

    def update_customer(self, customer_id: str, **updates) -> Optional[Customer]:
        """Update customer fields. Unknown columns raise ValueError."""
        if updates:
            self._update("customers", CUSTOMER_COLUMNS, customer_id, updates)
        return self.get_customer(customer_id)

    def mark_sent(self, customer_id: str, sent_at: str, request_count: int):
        """Record a successful send and clear any schedule."""
        self.update_customer(
            customer_id,
            sms_status=SmsStatus.SENT.value,
            sent_at=sent_at,
            sms_request_count=request_count,
            scheduled_send_at=None,
        )

    def reset_schedule(self, customer_id: str):
        """Fall back to manual sending after a failed scheduled send."""
        self.update_customer(
            customer_id, sms_status=SmsStatus.PENDING.value, scheduled_send_at=None
        )

    def delete_customer(self, customer_id: str, user_id: str) -> bool:
        """Delete a customer owned by user_id. Returns False if nothing matched."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM customers WHERE id = ? AND user_id = ?", (customer_id, user_id)
            )
            return cursor.rowcount > 0

    # ── Messages ───────────────────────────────────────────────────

    def add_message(
        self,
        customer_id: str,
        user_id: str,
        body: str,
        sent_at: str,
        was_scheduled: bool = False,
        twilio_message_sid: Optional[str] = None,
        delivery_status: str = "queued",
    ) -> Message:
        message_id = str(uuid.uuid4())
        with self._get_connection() as conn:
            conn.execute(
                """INSERT INTO messages
                   (id, customer_id, user_id, body, sent_at, was_scheduled,
                    twilio_message_sid, delivery_status)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (message_id, customer_id, user_id, body, sent_at, int(was_scheduled),
                 twilio_message_sid, delivery_status)
            )
        return self.get_message(message_id)

    def get_message(self, message_id: str) -> Optional[Message]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()
            return self._row_to_message(row) if row else None

    def get_message_by_sid(self, sid: str) -> Optional[Message]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM messages WHERE twilio_message_sid = ? LIMIT 1", (sid,)
            ).fetchone()
            return self._row_to_message(row) if row else None

    def update_message(self, message_id: str, **updates) -> Optional[Message]:
        if updates:
            self._update("messages", MESSAGE_COLUMNS, message_id, updates)
        return self.get_message(message_id)

    def get_customer_messages(self, customer_id: str) -> List[Message]:
        """Messages sent to one customer, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE customer_id = ? ORDER BY sent_at DESC",
                (customer_id,)
            ).fetchall()
            return [self._row_to_message(row) for row in rows]

    def get_messages_since(self, user_id: str, since_iso: str) -> List[Message]:
        """A user's messages sent at or after since_iso, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """SELECT * FROM messages
                   WHERE user_id = ? AND sent_at >= ?
                   ORDER BY sent_at DESC""",
                (user_id, since_iso)
            ).fetchall()
            return [self._row_to_message(row) for row in rows]

    # ── Helpers ────────────────────────────────────────────────────

    def _update(self, table: str, allowed: set, row_id: str, updates: dict):
        unknown = set(updates) - allowed
        if unknown:
            raise ValueError(f"Unknown {table} columns: {sorted(unknown)}")

        values = {k: _encode(k, v) for k, v in updates.items()}
        values["updated_at"] = to_iso(utc_now())

        set_clause = ", ".join(f"{k} = ?" for k in values.keys())
        with self._get_connection() as conn:
            conn.execute(
                f"UPDATE {table} SET {set_clause} WHERE id = ?",
                list(values.values()) + [row_id]
            )

    def _row_to_user(self, row: sqlite3.Row) -> User:
        """Convert database row to User object."""
        return User(
            id=row["id"],
            email=row["email"] or "",
            business_name=row["business_name"],
            review_links=json.loads(row["review_links"] or "[]"),
            sms_template=row["sms_template"],
            include_name_in_sms=bool(row["include_name_in_sms"]),
            include_job_in_sms=bool(row["include_job_in_sms"]),
            onboarding_completed=bool(row["onboarding_completed"]),
            sms_sent_this_month=row["sms_sent_this_month"] or 0,
            sms_sent_total=row["sms_sent_total"] or 0,
            subscription_tier=row["subscription_tier"],
            access_status=row["access_status"],
            account_status=row["account_status"],
            payment_method=row["payment_method"],
            stripe_customer_id=row["stripe_customer_id"],
            stripe_subscription_id=row["stripe_subscription_id"],
            subscription_start_date=row["subscription_start_date"],
            current_period_end=row["current_period_end"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_customer(self, row: sqlite3.Row) -> Customer:
        """Convert database row to Customer object."""
        return Customer(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            phone=json.loads(row["phone"] or "{}"),
            job_description=row["job_description"],
            sms_status=row["sms_status"],
            scheduled_send_at=row["scheduled_send_at"],
            sent_at=row["sent_at"],
            sms_request_count=row["sms_request_count"] or 0,
            opt_out=bool(row["opt_out"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_message(self, row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            customer_id=row["customer_id"],
            user_id=row["user_id"],
            body=row["body"],
            sent_at=row["sent_at"],
            was_scheduled=bool(row["was_scheduled"]),
            twilio_message_sid=row["twilio_message_sid"],
            delivery_status=row["delivery_status"],
            delivery_error_code=row["delivery_error_code"],
            delivery_error_message=row["delivery_error_message"],
            updated_at=row["updated_at"],
        )


def init_database(db_path: Union[str, Path] = DATABASE_FILE) -> Database:
    """Create the database file and tables if needed."""
    db = Database(db_path)
    db.init()
    return db
