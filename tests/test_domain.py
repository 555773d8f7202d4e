from datetime import datetime, timedelta, timezone

from myrevuhq.domain.keywords import InboundIntent, classify_inbound
from myrevuhq.domain.messages import compose_review_request
from myrevuhq.domain.models import Customer, User, to_iso
from myrevuhq.domain.phone import normalize_to_e164, region_for_e164
from myrevuhq.domain.sms_errors import GENERIC_FAILURE, parse_twilio_error
from myrevuhq.domain.tiers import (
    UNLIMITED_SMS,
    has_analytics,
    has_customer_analytics,
    sms_limit_for_tier,
)


# ── Tiers ──────────────────────────────────────────────────────

def test_tier_limits():
    assert sms_limit_for_tier("free") == 60
    assert sms_limit_for_tier("starter") == 15
    assert sms_limit_for_tier("pro") == 30
    assert sms_limit_for_tier("business") == 60
    assert sms_limit_for_tier("enterprise") == UNLIMITED_SMS


def test_unknown_or_missing_tier_has_no_allowance():
    assert sms_limit_for_tier(None) == 0
    assert sms_limit_for_tier("platinum") == 0


def test_analytics_gates():
    assert has_analytics("pro") and has_analytics("business")
    assert not has_analytics("starter")
    assert not has_analytics(None)
    assert has_customer_analytics("business")
    assert not has_customer_analytics("pro")


# ── Phone ──────────────────────────────────────────────────────

def test_normalize_with_iso_region():
    assert normalize_to_e164("07780 587666", "GB") == "+447780587666"


def test_normalize_with_calling_code():
    assert normalize_to_e164("07780587666", "44") == "+447780587666"
    assert normalize_to_e164("085 012 3456", "353") == "+353850123456"


def test_normalize_unmapped_calling_code_strips_trunk_zero():
    assert normalize_to_e164("0612345678", "33") == "+33612345678"


def test_normalize_international_input_ignores_country():
    assert normalize_to_e164("+447780587666", "US") == "+447780587666"


def test_normalize_rejects_empty_and_invalid():
    assert normalize_to_e164("", "GB") is None
    assert normalize_to_e164("   ", "GB") is None
    assert normalize_to_e164("12", "GB") is None
    assert normalize_to_e164("not a number", "GB") is None


def test_region_for_e164():
    assert region_for_e164("+447780587666") == "GB"
    assert region_for_e164("+12015550123") == "US"


# ── Message composition ────────────────────────────────────────

def _user(**kwargs):
    defaults = dict(
        id="u",
        business_name="Acme Plumbing",
        review_links=[
            {"name": "Google", "url": "https://g.page/acme"},
            {"name": "", "url": "https://ignored.example.com"},
        ],
    )
    defaults.update(kwargs)
    return User(**defaults)


def _customer(**kwargs):
    defaults = dict(id="c", user_id="u", name="Jane", job_description="Boiler service")
    defaults.update(kwargs)
    return Customer(**defaults)


def test_compose_full_message():
    body = compose_review_request(_user(), _customer(), "GB")
    assert body == (
        "Hi Jane,\n\n"
        "You recently had Acme Plumbing for work. We'd greatly appreciate a review on one "
        "or all of the following links:"
        "\n\nJob: Boiler service"
        "\n\nGoogle: https://g.page/acme"
    )


def test_compose_respects_toggles_and_blank_job():
    body = compose_review_request(
        _user(include_name_in_sms=False), _customer(job_description="   "), "GB"
    )
    assert not body.startswith("Hi")
    assert "Job:" not in body

    body = compose_review_request(_user(include_job_in_sms=False), _customer(), "GB")
    assert "Job:" not in body


def test_compose_custom_template_placeholder():
    user = _user(sms_template="Thanks from {businessName}! {businessName} appreciates you.")
    body = compose_review_request(user, _customer(name=""), "GB")
    assert body.startswith("Thanks from Acme Plumbing! Acme Plumbing appreciates you.")


def test_compose_without_business_name_uses_us():
    body = compose_review_request(_user(business_name=None, review_links=[]), _customer(), None)
    assert "You recently had us for work." in body


def test_compose_adds_footer_for_north_america_only():
    footer = "Msg&data rates may apply. Reply STOP to opt out, HELP for help."
    assert compose_review_request(_user(), _customer(), "US").endswith(footer)
    assert compose_review_request(_user(), _customer(), "CA").endswith(footer)
    assert footer not in compose_review_request(_user(), _customer(), "IE")


# ── Provider errors ────────────────────────────────────────────

def test_parse_known_error_code():
    info = parse_twilio_error(21610, "whatever")
    assert info.message == "This number has unsubscribed from receiving messages."
    assert info.code == "21610"


def test_parse_string_code():
    assert parse_twilio_error("30006").message.startswith("Landline")


def test_parse_falls_back_to_keywords_then_generic():
    assert "opted out" in parse_twilio_error(None, "Recipient unsubscribed").message
    assert "out of service" in parse_twilio_error(99999, "Carrier rejected").message
    assert parse_twilio_error(None, "").message == GENERIC_FAILURE


# ── Inbound keywords ───────────────────────────────────────────

def test_classify_inbound():
    assert classify_inbound(" stop ") is InboundIntent.OPT_OUT
    assert classify_inbound("StopAll") is InboundIntent.OPT_OUT
    assert classify_inbound("yes") is InboundIntent.OPT_IN
    assert classify_inbound("please stop") is InboundIntent.OTHER
    assert classify_inbound("") is InboundIntent.OTHER


# ── Timestamps ─────────────────────────────────────────────────

def test_to_iso_is_fixed_width_utc():
    aware = datetime(2026, 1, 5, 10, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_iso(aware) == "2026-01-05T08:00:00.000000+00:00"
    assert to_iso(datetime(2026, 1, 5, 8, 0)) == "2026-01-05T08:00:00.000000+00:00"
