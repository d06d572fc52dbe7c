import asyncio
from datetime import timedelta
from decimal import Decimal

from funnel_crm.api.closer_auth import CLOSER_TOKEN_COOKIE, issue_closer_token
from funnel_crm.settings import settings
from funnel_crm.shared.datetimes import utcnow
from tests.conftest import (
    ADMIN_AUTH,
    CRON_SECRET,
    add_affiliate,
    add_appointment,
    add_closer,
    add_conversion,
    add_lead,
)


def _seed_lead_with_closer(async_session_maker, email="api@x.com"):
    async def seed():
        async with async_session_maker() as session:
            lead = await add_lead(session, email=email, created_at=utcnow() - timedelta(days=2))
            owner = await add_closer(session)
            other = await add_closer(session, name="Other", email="other@closers.example.com")
            await add_appointment(
                session,
                customer_email=email,
                closer=owner,
                created_at=utcnow() - timedelta(days=1),
            )
            await session.commit()
            return lead.id, owner.id, other.id

    return asyncio.run(seed())


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readyz_reports_database(client):
    response = client.get("/readyz")

    assert response.status_code == 200
    assert response.json()["checks"]["database"]["message"] == "database reachable"


def test_admin_routes_require_basic_auth(client):
    response = client.get("/v1/admin/leads")

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.headers.get("www-authenticate") == "Basic"

    wrong = client.get("/v1/admin/leads", auth=("admin", "nope"))
    assert wrong.status_code == 401


def test_list_leads(client, async_session_maker):
    _seed_lead_with_closer(async_session_maker)

    response = client.get("/v1/admin/leads", params={"date_range": "7d"}, auth=ADMIN_AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["total_leads"] == 1
    assert body["all_completed_sessions"] == 1
    assert body["lead_conversion_rate"] == 100.0
    assert body["leads"][0]["email"] == "api@x.com"
    assert body["leads"][0]["name"] == "Jordan Lee"
    assert body["leads"][0]["status"] == "booked"


def test_list_leads_rejects_inverted_window(client):
    response = client.get(
        "/v1/admin/leads",
        params={"start_date": "2026-02-01T00:00:00Z", "end_date": "2026-01-01T00:00:00Z"},
        auth=ADMIN_AUTH,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "invalid_date_range"


def test_list_leads_rejects_unknown_range(client):
    response = client.get("/v1/admin/leads", params={"date_range": "2w"}, auth=ADMIN_AUTH)

    assert response.status_code == 422
    body = response.json()
    assert body["title"] == "Validation Error"
    assert body["errors"][0]["field"] == "date_range"


def test_export_leads_csv(client, async_session_maker):
    _seed_lead_with_closer(async_session_maker)

    response = client.get("/v1/admin/leads/export", params={"date_range": "all"}, auth=ADMIN_AUTH)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=leads.csv" == response.headers["content-disposition"]
    assert "api@x.com" in response.text
    assert '"booked"' in response.text


def test_lead_status_endpoint(client, async_session_maker):
    session_id, _, _ = _seed_lead_with_closer(async_session_maker)

    response = client.get(f"/v1/admin/leads/{session_id}/status", auth=ADMIN_AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["session_id"] == session_id
    assert body["status"] == "booked"

    missing = client.get("/v1/admin/leads/missing/status", auth=ADMIN_AUTH)
    assert missing.status_code == 404
    assert missing.json()["title"] == "Not Found"


def test_activities_for_admin_and_assigned_closer(client, async_session_maker):
    session_id, owner_id, other_id = _seed_lead_with_closer(async_session_maker)

    as_admin = client.get(f"/v1/leads/{session_id}/activities", auth=ADMIN_AUTH)
    assert as_admin.status_code == 200
    assert [item["type"] for item in as_admin.json()["activities"]] == ["quiz_completed", "call_booked"]

    owner_token = issue_closer_token(owner_id, settings)
    as_owner = client.get(
        f"/v1/leads/{session_id}/activities",
        headers={"Authorization": f"Bearer {owner_token}"},
    )
    assert as_owner.status_code == 200
    assert as_owner.json()["total"] == 2

    client.cookies.set(CLOSER_TOKEN_COOKIE, issue_closer_token(other_id, settings))
    as_other = client.get(f"/v1/leads/{session_id}/activities")
    client.cookies.clear()
    assert as_other.status_code == 403
    assert as_other.json()["title"] == "Forbidden"


def test_activities_require_authentication(client, async_session_maker):
    session_id, _, _ = _seed_lead_with_closer(async_session_maker)

    anonymous = client.get(f"/v1/leads/{session_id}/activities")
    assert anonymous.status_code == 401

    forged = client.get(
        f"/v1/leads/{session_id}/activities",
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert forged.status_code == 401


def test_commission_admin_endpoints(client, async_session_maker):
    async def seed():
        async with async_session_maker() as session:
            affiliate = await add_affiliate(session)
            due = await add_conversion(session, affiliate, hold_until=utcnow() - timedelta(days=1))
            later = await add_conversion(
                session, affiliate, amount=Decimal("20.00"), hold_until=utcnow() + timedelta(days=10)
            )
            await session.commit()
            return due.id, later.id

    due_id, later_id = asyncio.run(seed())

    status_response = client.get("/v1/admin/commissions/status", auth=ADMIN_AUTH)
    assert status_response.status_code == 200
    assert status_response.json()["ready_for_release"] == 1
    assert status_response.json()["held_amount"] == 70.0

    release = client.post("/v1/admin/commissions/release", auth=ADMIN_AUTH)
    assert release.status_code == 200
    assert release.json()["released_ids"] == [due_id]
    assert release.json()["released_amount"] == 50.0

    forced = client.post(f"/v1/admin/commissions/{later_id}/force-release", auth=ADMIN_AUTH)
    assert forced.status_code == 200
    assert forced.json()["commission_id"] == later_id

    again = client.post(f"/v1/admin/commissions/{later_id}/force-release", auth=ADMIN_AUTH)
    assert again.status_code == 409
    assert "current: available" in again.json()["detail"]

    missing = client.post("/v1/admin/commissions/missing/force-release", auth=ADMIN_AUTH)
    assert missing.status_code == 404


def test_cron_release_requires_secret(client, async_session_maker):
    async def seed():
        async with async_session_maker() as session:
            affiliate = await add_affiliate(session)
            await add_conversion(session, affiliate, hold_until=utcnow() - timedelta(days=1))
            await session.commit()

    asyncio.run(seed())

    denied = client.get("/v1/cron/release-commissions", headers={"Authorization": "Bearer wrong"})
    assert denied.status_code == 401

    response = client.get(
        "/v1/cron/release-commissions", headers={"Authorization": f"Bearer {CRON_SECRET}"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["released_count"] == 1
    assert body["hold_days"] == 30
    assert body["message"] == "Automatically released 1 commissions"

    empty = client.get(
        "/v1/cron/release-commissions", headers={"Authorization": f"Bearer {CRON_SECRET}"}
    )
    assert empty.json()["released_count"] == 0
    assert empty.json()["message"] == "No commissions ready for automatic release"


def test_request_id_is_echoed(client):
    response = client.get("/healthz", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
