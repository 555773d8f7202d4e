import json

import pytest
from fastapi.testclient import TestClient

from conftest import CRON_SECRET, TOKEN, UK_MOBILE, USER_EMAIL, USER_ID, WEBHOOK_SECRET, sign_webhook
from myrevuhq.application.inbound import TWIML_UNSUBSCRIBED


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_shutdown_closes_client_sessions(app, auth_client, mailer, country_lookup):
    with TestClient(app) as test_client:
        test_client.get("/api/health")
        auth_client.close.assert_not_called()

    auth_client.close.assert_called_once_with()
    mailer.close.assert_called_once_with()
    country_lookup.close.assert_called_once_with()


# ── Auth ───────────────────────────────────────────────────────────


@pytest.mark.parametrize("method,path", [
    ("get", "/api/account"),
    ("get", "/api/customers"),
    ("post", "/api/send-sms"),
    ("get", "/api/analytics"),
    ("get", "/api/billing/subscription"),
])
def test_protected_routes_need_a_token(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_invalid_token_is_rejected(client):
    response = client.get("/api/account", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_session_cookie_is_accepted(client, user):
    client.cookies.set("access_token", TOKEN)
    assert client.get("/api/account").status_code == 200


def test_sync_session_sets_cookies(client):
    response = client.post("/api/auth/sync-session",
                           json={"access_token": TOKEN, "refresh_token": "refresh"})
    assert response.status_code == 200
    assert response.json()["user"] == {"id": USER_ID, "email": USER_EMAIL}
    set_cookie = response.headers.get_list("set-cookie")
    assert any(c.startswith("access_token=good-token") and "HttpOnly" in c for c in set_cookie)
    assert any(c.startswith("refresh_token=refresh") for c in set_cookie)


def test_sync_session_errors(client):
    assert client.post("/api/auth/sync-session", json={}).status_code == 400
    response = client.post("/api/auth/sync-session", json={"access_token": "bad"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid token"}


def test_check_email(client, user):
    assert client.get("/api/auth/check-email").status_code == 400
    assert client.get("/api/auth/check-email", params={"email": USER_EMAIL}).json()["exists"] is True
    assert client.get("/api/auth/check-email", params={"email": "x@y.z"}).json() == {
        "exists": False, "createdAt": None,
    }


# ── Account ────────────────────────────────────────────────────────


def test_account_is_created_on_first_visit(client, db, auth_headers):
    response = client.get("/api/account", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["id"] == USER_ID
    assert db.get_user(USER_ID).email == USER_EMAIL


def test_update_account(client, user, auth_headers):
    response = client.put("/api/account", headers=auth_headers, json={
        "business_name": "Acme Heating",
        "review_links": [
            {"name": "Trustpilot", "url": "https://trustpilot.com/acme"},
            {"name": "", "url": ""},
        ],
        "include_job_in_sms": False,
        "sms_template": None,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["business_name"] == "Acme Heating"
    assert body["review_links"] == [{"name": "Trustpilot", "url": "https://trustpilot.com/acme"}]
    assert body["include_job_in_sms"] is False
    assert body["include_name_in_sms"] is True
    assert body["access_status"] == "active"


def test_update_account_rejects_bad_url(client, user, auth_headers):
    response = client.put("/api/account", headers=auth_headers, json={
        "review_links": [{"name": "Google", "url": "http://"}],
    })
    assert response.status_code == 400
    assert "error" in response.json()


# ── Customers ──────────────────────────────────────────────────────


def test_customer_crud(client, db, user, auth_headers):
    created = client.post("/api/customers", headers=auth_headers, json={
        "name": "Jane Smith",
        "phone": UK_MOBILE,
        "jobDescription": "  ",
    })
    assert created.status_code == 201
    customer = created.json()
    assert customer["sms_status"] == "pending"
    assert customer["job_description"] is None

    listed = client.get("/api/customers", headers=auth_headers).json()
    assert listed["total"] == 1
    assert listed["totalCount"] == 1
    assert listed["customers"][0]["messages"] == []

    updated = client.put(f"/api/customers/{customer['id']}", headers=auth_headers,
                         json={"jobDescription": "Roof repair"})
    assert updated.json()["job_description"] == "Roof repair"
    assert updated.json()["name"] == "Jane Smith"

    deleted = client.delete(f"/api/customers/{customer['id']}", headers=auth_headers)
    assert deleted.status_code == 204
    assert db.get_customer(customer["id"]) is None


def test_scheduled_customer_is_stored_in_utc(client, db, user, auth_headers):
    response = client.post("/api/customers", headers=auth_headers, json={
        "name": "Jane Smith",
        "phone": UK_MOBILE,
        "scheduledSendAt": "2026-06-01T10:00:00+01:00",
    })
    body = response.json()
    assert body["sms_status"] == "scheduled"
    assert body["scheduled_send_at"] == "2026-06-01T09:00:00.000000+00:00"


def test_create_customer_validation(client, user, auth_headers):
    response = client.post("/api/customers", headers=auth_headers, json={
        "name": "J", "phone": UK_MOBILE,
    })
    assert response.status_code == 400

    response = client.post("/api/customers", headers=auth_headers, json={
        "name": "Jane", "phone": UK_MOBILE, "jobDescription": "x" * 251,
    })
    assert response.status_code == 400


def test_cannot_touch_another_owners_customer(client, db, user, auth_headers):
    other = db.add_customer("other-user", "Jane", dict(UK_MOBILE))
    assert client.put(f"/api/customers/{other.id}", headers=auth_headers,
                      json={"name": "Hacked"}).status_code == 404
    assert client.delete(f"/api/customers/{other.id}", headers=auth_headers).status_code == 404
    assert db.get_customer(other.id).name == "Jane"


def test_import_upload(client, db, user, auth_headers):
    content = b"Name,Phone\nJane Smith,07780587667\nBob,07780587668\n"
    response = client.post(
        "/api/customers/import",
        headers=auth_headers,
        files={"file": ("customers.csv", content, "text/csv")},
        data={"defaultCountry": "GB"},
    )
    assert response.status_code == 200
    assert response.json() == {"added": 2, "skipped": 0, "errors": []}
    assert db.count_customers(USER_ID) == 2


def test_import_rejects_unreadable_upload(client, user, auth_headers):
    response = client.post(
        "/api/customers/import",
        headers=auth_headers,
        files={"file": ("customers.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 400
    assert "Unsupported file format" in response.json()["error"]


# ── Sending ────────────────────────────────────────────────────────


def test_send_sms(client, db, customer, provider, auth_headers):
    response = client.post("/api/send-sms", headers=auth_headers, json={"customerId": customer.id})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["messageSid"] == provider.sent[0]["sid"]
    assert body["customer"]["sms_request_count"] == 1
    assert body["usage"] == {"sms_sent_this_month": 1, "sms_limit": 30}

    listed = client.get("/api/customers", headers=auth_headers).json()
    assert len(listed["customers"][0]["messages"]) == 1


def test_send_sms_errors_map_to_status_codes(client, db, customer, auth_headers):
    assert client.post("/api/send-sms", headers=auth_headers,
                       json={"customerId": "not-a-uuid"}).status_code == 400

    db.update_user(USER_ID, sms_sent_this_month=30)
    response = client.post("/api/send-sms", headers=auth_headers, json={"customerId": customer.id})
    assert response.status_code == 429
    assert "Monthly SMS limit" in response.json()["error"]

    db.update_user(USER_ID, access_status="past_due")
    assert client.post("/api/send-sms", headers=auth_headers,
                       json={"customerId": customer.id}).status_code == 403


# ── Analytics and billing ──────────────────────────────────────────


def test_analytics_forbidden_for_starter(client, db, user, auth_headers):
    db.update_user(USER_ID, subscription_tier="starter")
    response = client.get("/api/analytics", headers=auth_headers)
    assert response.status_code == 403


def test_checkout_session(client, user, stripe_client, auth_headers):
    stripe_client.create_customer.return_value = {"id": "cus_1"}
    stripe_client.create_checkout_session.return_value = {"url": "https://checkout.stripe.com/x"}

    response = client.post("/api/billing/create-checkout-session", headers=auth_headers,
                           json={"currency": "EUR", "tier": "business"})
    assert response.json() == {"url": "https://checkout.stripe.com/x"}

    response = client.post("/api/billing/create-checkout-session", headers=auth_headers)
    assert response.status_code == 200


def test_stripe_webhook_endpoint(client, db, user):
    db.update_user(USER_ID, stripe_customer_id="cus_1")
    payload = json.dumps({
        "id": "evt_1",
        "type": "customer.subscription.deleted",
        "data": {"object": {"customer": "cus_1"}},
    }).encode()

    unsigned = client.post("/api/billing/webhook", content=payload)
    assert unsigned.status_code == 400

    response = client.post("/api/billing/webhook", content=payload,
                           headers={"stripe-signature": sign_webhook(payload, WEBHOOK_SECRET)})
    assert response.json() == {"received": True}
    assert db.get_user(USER_ID).access_status == "canceled"


# ── Twilio ─────────────────────────────────────────────────────────


def test_twilio_inbound_stop(client, db, customer):
    response = client.post("/api/twilio/sms-webhook", data={"From": "+447780587666", "Body": "STOP"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/xml")
    assert response.text == TWIML_UNSUBSCRIBED
    assert db.get_customer(customer.id).opt_out is True


def test_twilio_inbound_missing_fields(client):
    response = client.post("/api/twilio/sms-webhook", data={"From": "+447780587666"})
    assert response.status_code == 400


def test_twilio_status_callback(client, db, customer):
    db.add_message(customer.id, USER_ID, "hi", "2026-01-01T09:00:00.000000+00:00",
                   twilio_message_sid="SM1")
    response = client.post("/api/twilio/status-callback",
                           data={"MessageSid": "SM1", "MessageStatus": "undelivered",
                                 "ErrorCode": "30005"})
    assert response.json() == {"message": "Status updated"}
    assert db.get_customer(customer.id).sms_status == "failed"

    assert client.get("/api/twilio/status-callback").json()["method"] == "POST"


# ── Cron ───────────────────────────────────────────────────────────


def test_cron_requires_secret(client):
    assert client.post("/api/cron/send-scheduled-sms").status_code == 401
    assert client.post("/api/cron/send-scheduled-sms",
                       headers={"Authorization": "Bearer wrong"}).status_code == 401


def test_cron_sends_due_scheduled(client, db, user, provider):
    due = db.add_customer(USER_ID, "Jane", dict(UK_MOBILE),
                          scheduled_send_at="2020-01-01T09:00:00.000000+00:00")
    response = client.post("/api/cron/send-scheduled-sms",
                           headers={"Authorization": f"Bearer {CRON_SECRET}"})
    assert response.json() == {
        "message": "Scheduled SMS processing complete",
        "processed": 1,
        "successful": 1,
        "failed": 0,
        "results": [{"customer_id": due.id, "success": True, "error": None}],
    }
    assert len(provider.sent) == 1


def test_cron_reset_monthly(client, db, user):
    db.update_user(USER_ID, sms_sent_this_month=12)
    response = client.post("/api/cron/reset-monthly-sms", headers={"x-vercel-cron": "1"})
    assert response.json()["usersReset"] == 1
    assert db.get_user(USER_ID).sms_sent_this_month == 0


# ── Geo ────────────────────────────────────────────────────────────


def test_detect_country_from_platform_header(client):
    response = client.get("/api/geo/detect-country",
                          headers={"x-vercel-ip-country": "ie", "x-forwarded-for": "1.2.3.4, 10.0.0.1"})
    assert response.json() == {"country": "IE", "method": "vercel-header", "ip": "1.2.3.4"}


def test_detect_country_from_ip_lookup(client, country_lookup):
    country_lookup.country_for_ip.return_value = "US"
    response = client.get("/api/geo/detect-country", headers={"x-real-ip": "8.8.8.8"})
    assert response.json() == {"country": "US", "method": "ip-api", "ip": "8.8.8.8"}
    country_lookup.country_for_ip.assert_called_once_with("8.8.8.8")


def test_detect_country_fallback(client):
    assert client.get("/api/geo/detect-country").json()["country"] == "GB"
