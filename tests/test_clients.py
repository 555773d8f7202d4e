from unittest.mock import MagicMock

import pytest
import requests

from myrevuhq.infrastructure.auth import AuthProviderError, SupabaseAuthClient
from myrevuhq.infrastructure.email import EmailError, ResendMailer
from myrevuhq.infrastructure.geo import CountryLookup
from myrevuhq.infrastructure.sms import MessagingError, TwilioProvider


def _response(status, body=None, text=""):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.text = text
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


# ── Twilio ─────────────────────────────────────────────────────────


def test_twilio_posts_message_with_status_callback():
    session = MagicMock()
    session.post.return_value = _response(201, {"sid": "SM123", "status": "queued"})
    provider = TwilioProvider("AC1", "secret", sender="MyRevuHQ", session=session)

    sent = provider.send_message("+447780587666", "Hello", status_callback="https://x/cb")

    assert (sent.sid, sent.status) == ("SM123", "queued")
    url = session.post.call_args[0][0]
    kwargs = session.post.call_args[1]
    assert url == "https://api.twilio.com/2010-04-01/Accounts/AC1/Messages.json"
    assert kwargs["auth"] == ("AC1", "secret")
    assert kwargs["data"] == {
        "To": "+447780587666", "From": "MyRevuHQ", "Body": "Hello", "StatusCallback": "https://x/cb",
    }


def test_twilio_rejection_carries_error_code():
    session = MagicMock()
    session.post.return_value = _response(400, {"code": 21211, "message": "Invalid 'To' Phone Number"})

    with pytest.raises(MessagingError) as exc_info:
        TwilioProvider("AC1", "secret", session=session).send_message("+4412", "Hi")
    assert exc_info.value.code == "21211"
    assert exc_info.value.http_status == 400


def test_twilio_unconfigured_refuses_to_send():
    session = MagicMock()
    with pytest.raises(MessagingError, match="not configured"):
        TwilioProvider(session=session).send_message("+447780587666", "Hi")
    session.post.assert_not_called()


# ── Supabase auth ──────────────────────────────────────────────────


def test_auth_resolves_user():
    session = MagicMock()
    session.get.return_value = _response(200, {"id": "u1", "email": "a@example.com"})
    client = SupabaseAuthClient("https://sb.example.com/", "service", session=session)

    user = client.get_user("tok")

    assert (user.user_id, user.email) == ("u1", "a@example.com")
    assert session.get.call_args[0][0] == "https://sb.example.com/auth/v1/user"
    assert session.get.call_args[1]["headers"]["Authorization"] == "Bearer tok"


def test_auth_rejected_token_is_none():
    session = MagicMock()
    session.get.return_value = _response(401, {"message": "invalid JWT"})
    assert SupabaseAuthClient("https://sb", "k", session=session).get_user("tok") is None


def test_auth_unreachable_raises():
    session = MagicMock()
    session.get.side_effect = requests.Timeout("slow")
    with pytest.raises(AuthProviderError):
        SupabaseAuthClient("https://sb", "k", session=session).get_user("tok")


# ── Resend ─────────────────────────────────────────────────────────


def test_mailer_sends_to_admin_by_default():
    session = MagicMock()
    session.post.return_value = _response(200, {"id": "em_1"})
    mailer = ResendMailer("re_key", "MyRevuHQ <a@b.c>", "admin@example.com", session=session)

    assert mailer.send("Subject", "<p>hi</p>") == "em_1"
    assert session.post.call_args[1]["json"]["to"] == ["admin@example.com"]


def test_mailer_without_key_only_logs():
    session = MagicMock()
    assert ResendMailer("", "a@b.c", "admin@example.com", session=session).send("S", "B") is None
    session.post.assert_not_called()


def test_mailer_error_status_raises():
    session = MagicMock()
    session.post.return_value = _response(422, text="bad from")
    with pytest.raises(EmailError, match="422"):
        ResendMailer("re_key", "a@b.c", "admin@example.com", session=session).send("S", "B")


# ── Country lookup ─────────────────────────────────────────────────


def test_country_lookup_reads_plain_text_code():
    session = MagicMock()
    session.get.return_value = _response(200, text="ie\n")
    assert CountryLookup(session=session).country_for_ip("1.2.3.4") == "IE"


@pytest.mark.parametrize("ip", ["", "127.0.0.1", "::1"])
def test_country_lookup_skips_local_addresses(ip):
    session = MagicMock()
    assert CountryLookup(session=session).country_for_ip(ip) is None
    session.get.assert_not_called()


def test_country_lookup_swallows_failures():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("down")
    assert CountryLookup(session=session).country_for_ip("1.2.3.4") is None

    session.get.side_effect = None
    session.get.return_value = _response(200, text="Undefined")
    assert CountryLookup(session=session).country_for_ip("1.2.3.4") is None
