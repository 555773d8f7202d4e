import pytest

from conftest import UK_MOBILE_E164, USER_ID
from myrevuhq.application.errors import (
    ForbiddenError,
    LimitReachedError,
    NotFoundError,
    SmsSendError,
    ValidationError,
)
from myrevuhq.application.sms_sender import ReviewRequestSender
from myrevuhq.infrastructure.sms import MessagingError


@pytest.fixture
def sender(db, provider, settings):
    return ReviewRequestSender(db, provider, settings.app)


def test_successful_send_records_everything(sender, db, provider, customer):
    result = sender.send(USER_ID, customer.id)

    assert len(provider.sent) == 1
    sent = provider.sent[0]
    assert sent["to"] == UK_MOBILE_E164
    assert sent["status_callback"] == "https://app.example.com/api/twilio/status-callback"
    assert sent["body"].startswith("Hi Sayyam,")
    assert "Google: https://g.page/acme" in sent["body"]

    stored = db.get_customer(customer.id)
    assert stored.sms_status == "sent"
    assert stored.sms_request_count == 1
    assert stored.sent_at == result.sent_at

    messages = db.get_customer_messages(customer.id)
    assert len(messages) == 1
    assert messages[0].twilio_message_sid == result.message_sid
    assert messages[0].delivery_status == "queued"
    assert messages[0].was_scheduled is False

    user = db.get_user(USER_ID)
    assert user.sms_sent_this_month == 1
    assert user.sms_sent_total == 1
    assert result.to_dict()["usage"] == {"sms_sent_this_month": 1, "sms_limit": 30}


def test_unknown_user(sender, db):
    with pytest.raises(NotFoundError):
        sender.send("nobody", "whatever")


def test_deleted_account_is_forbidden(sender, db, customer, provider):
    db.update_user(USER_ID, account_status="deleted")
    with pytest.raises(ForbiddenError, match="deleted"):
        sender.send(USER_ID, customer.id)
    assert provider.sent == []


@pytest.mark.parametrize("status", ["inactive", "past_due", "canceled"])
def test_inactive_billing_is_forbidden(sender, db, customer, status):
    db.update_user(USER_ID, access_status=status)
    with pytest.raises(ForbiddenError, match="not active"):
        sender.send(USER_ID, customer.id)


def test_no_tier_is_forbidden(sender, db, customer):
    db.update_user(USER_ID, subscription_tier=None)
    with pytest.raises(ForbiddenError, match="No active subscription"):
        sender.send(USER_ID, customer.id)


def test_monthly_limit(sender, db, customer):
    db.update_user(USER_ID, sms_sent_this_month=30)
    with pytest.raises(LimitReachedError) as exc_info:
        sender.send(USER_ID, customer.id)
    assert exc_info.value.status_code == 429
    assert "30 of 30" in exc_info.value.message


def test_customer_owned_by_someone_else(sender, db, user):
    other = db.add_customer("other-user", "Jane", {"countryCode": "GB", "number": "07780587666"})
    with pytest.raises(NotFoundError, match="Customer not found"):
        sender.send(USER_ID, other.id)


def test_opted_out_customer(sender, db, customer):
    db.update_customer(customer.id, opt_out=True)
    with pytest.raises(ForbiddenError, match="opted out"):
        sender.send(USER_ID, customer.id)


def test_per_customer_cap(sender, db, customer):
    db.update_customer(customer.id, sms_request_count=3)
    with pytest.raises(ForbiddenError, match="Maximum of 3"):
        sender.send(USER_ID, customer.id)


def test_invalid_phone(sender, db, customer, provider):
    db.update_customer(customer.id, phone={"countryCode": "GB", "number": "123"})
    with pytest.raises(ValidationError):
        sender.send(USER_ID, customer.id)
    assert provider.sent == []


def test_us_recipient_gets_compliance_footer(sender, db, user, provider):
    us = db.add_customer(USER_ID, "Joe", {"countryCode": "US", "number": "201-555-0123"})
    sender.send(USER_ID, us.id)
    assert provider.sent[0]["to"] == "+12015550123"
    assert provider.sent[0]["body"].endswith("Reply STOP to opt out, HELP for help.")


def test_provider_error_is_translated_and_nothing_recorded(sender, db, customer, provider):
    provider.error = MessagingError("Failed to send SMS: blocked", code="21610")
    with pytest.raises(SmsSendError) as exc_info:
        sender.send(USER_ID, customer.id)

    assert exc_info.value.message == "This number has unsubscribed from receiving messages."
    assert exc_info.value.code == "21610"
    assert db.get_customer(customer.id).sms_status == "pending"
    assert db.get_customer_messages(customer.id) == []
    assert db.get_user(USER_ID).sms_sent_this_month == 0


def test_scheduled_customer_send_is_flagged(sender, db, user):
    scheduled = db.add_customer(
        USER_ID, "Jane", {"countryCode": "GB", "number": "07780587666"},
        scheduled_send_at="2026-01-01T09:00:00.000000+00:00",
    )
    sender.send(USER_ID, scheduled.id)
    assert db.get_customer_messages(scheduled.id)[0].was_scheduled is True
    assert db.get_customer(scheduled.id).scheduled_send_at is None
