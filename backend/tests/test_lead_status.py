import asyncio
from datetime import timedelta

import pytest

from funnel_crm.domain.errors import NotFoundError
from funnel_crm.domain.leads.service import get_lead_status, get_lead_statuses
from tests.conftest import NOW, add_appointment, add_lead


def _status(async_session_maker, session_id):
    async def _run():
        async with async_session_maker() as session:
            return await get_lead_status(session, session_id)

    return asyncio.run(_run())


def test_direct_appointment_marks_lead_booked(async_session_maker):
    async def seed():
        async with async_session_maker() as session:
            lead = await add_lead(session, email="direct@x.com")
            appointment = await add_appointment(
                session, customer_email="direct@x.com", quiz_session_id=lead.id, affiliate_code="ALPHA"
            )
            await session.commit()
            return lead.id, appointment.id

    session_id, appointment_id = asyncio.run(seed())
    status = _status(async_session_maker, session_id)

    assert status.status == "booked"
    assert status.appointment_id == appointment_id
    assert status.affiliate_code == "ALPHA"


def test_unlinked_appointment_matched_by_lowercased_email(async_session_maker):
    async def seed():
        async with async_session_maker() as session:
            lead = await add_lead(session, email="Mixed.Case@X.com")
            await add_appointment(session, customer_email="mixed.case@x.com")
            await session.commit()
            return lead.id

    status = _status(async_session_maker, asyncio.run(seed()))

    assert status.status == "booked"
    assert status.label == "Booked"


def test_appointment_linked_to_another_session_is_ignored(async_session_maker):
    async def seed():
        async with async_session_maker() as session:
            first = await add_lead(session, email="shared@x.com", created_at=NOW - timedelta(days=3))
            second = await add_lead(session, email="shared@x.com")
            await add_appointment(session, customer_email="shared@x.com", quiz_session_id=first.id)
            await session.commit()
            return second.id

    status = _status(async_session_maker, asyncio.run(seed()))

    assert status.status == "completed"
    assert status.appointment_id is None


def test_lead_without_appointment_is_completed(async_session_maker):
    async def seed():
        async with async_session_maker() as session:
            lead = await add_lead(session, email="quiet@x.com")
            await session.commit()
            return lead.id

    status = _status(async_session_maker, asyncio.run(seed()))

    assert status.status == "completed"
    assert status.description == "Completed quiz with contact info"


def test_unknown_session_status_raises(async_session_maker):
    with pytest.raises(NotFoundError):
        _status(async_session_maker, "nope")


def test_batched_statuses_match_single_lookups(async_session_maker):
    async def seed():
        async with async_session_maker() as session:
            direct = await add_lead(session, email="direct@x.com")
            by_email = await add_lead(session, email="By.Email@x.com")
            linked_elsewhere = await add_lead(session, email="direct@x.com", created_at=NOW - timedelta(days=2))
            quiet = await add_lead(session, email="quiet@x.com")
            direct_appointment = await add_appointment(
                session, customer_email="direct@x.com", quiz_session_id=direct.id
            )
            await add_appointment(session, customer_email="by.email@x.com", created_at=NOW - timedelta(days=5))
            latest_by_email = await add_appointment(session, customer_email="by.email@x.com")
            await session.commit()
            return {
                "direct": direct.id,
                "by_email": by_email.id,
                "linked_elsewhere": linked_elsewhere.id,
                "quiet": quiet.id,
                "direct_appointment": direct_appointment.id,
                "latest_by_email": latest_by_email.id,
            }

    ids = asyncio.run(seed())
    session_ids = [ids["direct"], ids["by_email"], ids["linked_elsewhere"], ids["quiet"], "unknown"]

    async def _run():
        async with async_session_maker() as session:
            return await get_lead_statuses(session, session_ids)

    statuses = asyncio.run(_run())

    assert set(statuses) == set(session_ids)
    assert statuses[ids["direct"]].status == "booked"
    assert statuses[ids["direct"]].appointment_id == ids["direct_appointment"]
    assert statuses[ids["by_email"]].appointment_id == ids["latest_by_email"]
    assert statuses[ids["linked_elsewhere"]].status == "completed"
    assert statuses[ids["quiet"]].status == "completed"
    assert statuses["unknown"].status == "completed"
    for session_id in session_ids[:4]:
        assert statuses[session_id] == _status(async_session_maker, session_id)


def test_batched_statuses_for_empty_page(async_session_maker):
    async def _run():
        async with async_session_maker() as session:
            return await get_lead_statuses(session, [])

    assert asyncio.run(_run()) == {}
