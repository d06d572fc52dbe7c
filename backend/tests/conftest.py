import asyncio
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def ensure_event_loop() -> asyncio.AbstractEventLoop:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

    if loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

    return loop


ensure_event_loop()

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from funnel_crm.domain.affiliates.db_models import Affiliate, AffiliateConversion
from funnel_crm.domain.closers.db_models import Appointment, Closer
from funnel_crm.domain.quiz.db_models import QuizAnswer, QuizQuestion, QuizSession
from funnel_crm.domain.quiz.statuses import (
    QUESTION_TYPE_EMAIL,
    QUESTION_TYPE_SINGLE,
    QUESTION_TYPE_TEXT,
    SESSION_STATUS_COMPLETED,
)
from funnel_crm.infra import models  # noqa: F401
from funnel_crm.infra.db import Base, get_db_session
from funnel_crm.main import app
from funnel_crm.settings import settings

ADMIN_AUTH = ("admin", "admin-test-password")
CRON_SECRET = "cron-test-secret"
AUTH_SECRET = "closer-token-test-secret"
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def test_engine():
    db_path = Path("test.db")
    if db_path.exists():
        db_path.unlink()
    engine = create_async_engine(
        "sqlite+aiosqlite:///./test.db",
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=StaticPool,
    )

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture(scope="session")
def async_session_maker(test_engine):
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture(autouse=True)
def configure_test_settings(monkeypatch):
    monkeypatch.setattr(settings, "testing", True)
    monkeypatch.setattr(settings, "app_env", "dev")
    monkeypatch.setattr(settings, "admin_basic_username", ADMIN_AUTH[0])
    monkeypatch.setattr(settings, "admin_basic_password", ADMIN_AUTH[1])
    monkeypatch.setattr(settings, "cron_secret", CRON_SECRET)
    monkeypatch.setattr(settings, "auth_secret_key", AUTH_SECRET)
    monkeypatch.setattr(settings, "commission_hold_days", 30)
    yield


@pytest.fixture(autouse=True)
def clean_database(test_engine):
    async def truncate_tables() -> None:
        async with test_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                await conn.execute(table.delete())

    asyncio.run(truncate_tables())
    yield


@pytest.fixture()
def client(async_session_maker):
    ensure_event_loop()

    async def override_db_session():
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    original_factory = getattr(app.state, "db_session_factory", None)
    app.state.db_session_factory = async_session_maker
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.db_session_factory = original_factory


async def add_question(
    session,
    prompt: str,
    *,
    question_type: str = QUESTION_TYPE_SINGLE,
    order: int = 0,
    quiz_type: str = "financial-profile",
) -> QuizQuestion:
    question = QuizQuestion(quiz_type=quiz_type, prompt=prompt, type=question_type, order=order)
    session.add(question)
    await session.flush()
    return question


async def add_quiz_session(
    session,
    *,
    answers: list[tuple[QuizQuestion, Any]] | None = None,
    status: str = SESSION_STATUS_COMPLETED,
    created_at: datetime = NOW - timedelta(days=1),
    completed_at: datetime | None = None,
    affiliate_code: str | None = None,
    quiz_type: str = "financial-profile",
) -> QuizSession:
    quiz_session = QuizSession(
        quiz_type=quiz_type,
        status=status,
        affiliate_code=affiliate_code,
        created_at=created_at,
        completed_at=completed_at,
    )
    session.add(quiz_session)
    await session.flush()
    for index, (question, value) in enumerate(answers or []):
        session.add(
            QuizAnswer(
                session_id=quiz_session.id,
                question_id=question.id,
                value=value,
                created_at=created_at + timedelta(seconds=index + 1),
            )
        )
    await session.flush()
    return quiz_session


async def add_lead(
    session,
    *,
    name: str | None = "Jordan Lee",
    email: str | None = "jordan@example.com",
    created_at: datetime = NOW - timedelta(days=1),
    completed_at: datetime | None = None,
    affiliate_code: str | None = None,
    status: str = SESSION_STATUS_COMPLETED,
    extra_answers: list[tuple[QuizQuestion, Any]] | None = None,
) -> QuizSession:
    """Completed quiz session with a name question and an email question."""
    name_question = await add_question(session, "What is your name?", question_type=QUESTION_TYPE_TEXT, order=1)
    email_question = await add_question(session, "Your email address", question_type=QUESTION_TYPE_EMAIL, order=2)
    answers: list[tuple[QuizQuestion, Any]] = [(name_question, name), (email_question, email)]
    answers.extend(extra_answers or [])
    return await add_quiz_session(
        session,
        answers=answers,
        status=status,
        created_at=created_at,
        completed_at=completed_at or created_at + timedelta(minutes=5),
        affiliate_code=affiliate_code,
    )


async def add_affiliate(session, *, referral_code: str = "PARTNER1", name: str = "Partner One") -> Affiliate:
    affiliate = Affiliate(
        name=name,
        email=f"{referral_code.lower()}@affiliates.example.com",
        referral_code=referral_code,
        commission_rate=Decimal("0.1000"),
        total_commission=Decimal("0"),
    )
    session.add(affiliate)
    await session.flush()
    return affiliate


async def add_conversion(
    session,
    affiliate: Affiliate,
    *,
    amount: Decimal = Decimal("50.00"),
    status: str = "held",
    hold_until: datetime | None = NOW - timedelta(days=1),
    conversion_type: str = "sale",
    quiz_session_id: str | None = None,
    created_at: datetime = NOW - timedelta(days=31),
) -> AffiliateConversion:
    conversion = AffiliateConversion(
        affiliate_id=affiliate.id,
        quiz_session_id=quiz_session_id,
        conversion_type=conversion_type,
        commission_amount=amount,
        commission_status=status,
        hold_until=hold_until,
        created_at=created_at,
    )
    session.add(conversion)
    await session.flush()
    return conversion


async def add_closer(session, *, name: str = "Casey Closer", email: str = "casey@closers.example.com") -> Closer:
    closer = Closer(name=name, email=email)
    session.add(closer)
    await session.flush()
    return closer


async def add_appointment(
    session,
    *,
    customer_email: str,
    closer: Closer | None = None,
    quiz_session_id: str | None = None,
    created_at: datetime = NOW - timedelta(hours=20),
    updated_at: datetime | None = None,
    outcome: str | None = None,
    **fields: Any,
) -> Appointment:
    appointment = Appointment(
        closer_id=closer.id if closer else None,
        quiz_session_id=quiz_session_id,
        customer_email=customer_email,
        customer_name=fields.pop("customer_name", "Jordan Lee"),
        scheduled_at=fields.pop("scheduled_at", created_at + timedelta(days=2)),
        outcome=outcome,
        created_at=created_at,
        updated_at=updated_at or created_at,
        **fields,
    )
    session.add(appointment)
    await session.flush()
    return appointment
