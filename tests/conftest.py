"""Pytest configuration and shared fixtures.

Every test gets its own file-backed SQLite database so sessions opened by
the engine, the routers and the test itself all see the same data.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Set testing mode BEFORE importing app
os.environ["TESTING"] = "true"

from coldchain.config import settings

# Override settings for testing
settings.testing = True
settings.escalation_check_enabled = False
settings.cron_secret = ""
settings.timezone = "Europe/Brussels"

from coldchain.database import create_engine_for_url, get_db
from coldchain.main import app
from coldchain.models import (
    AlarmLayer,
    Alert,
    AlertStatus,
    AlertType,
    BackupContact,
    Base,
    ColdCell,
    Customer,
    EscalationConfig,
    Location,
    Technician,
    TimeSlot,
)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Per-test SQLite engine with the full schema created."""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for each test."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_maker) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client bound to the test database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def channels():
    """Patch the outbound channels used by the dispatch fan-out."""
    target = "coldchain.services.notifications.dispatch"
    with (
        patch(f"{target}.send_alert_email", new_callable=AsyncMock) as email,
        patch(f"{target}.send_sms", new_callable=AsyncMock) as sms,
        patch(f"{target}.initiate_phone_call", new_callable=AsyncMock) as call,
    ):
        email.return_value = True
        sms.return_value = True
        call.return_value = "CA0000000000000000000000000000000"
        yield SimpleNamespace(email=email, sms=sms, call=call)


@pytest.fixture
def make_cold_cell(db_session):
    """Factory creating technician -> customer -> location -> cold cell."""

    async def _make(
        backup_phones: tuple[str, ...] = ("+32470000002",),
        overrides: dict[str, bool | None] | None = None,
        with_technician: bool = True,
        **customer_fields,
    ) -> ColdCell:
        technician = None
        if with_technician:
            technician = Technician(
                name="Tom Technician",
                email="tech@example.com",
                phone="+32470000009",
            )
            db_session.add(technician)

        fields = {
            "company_name": f"Frost Foods {uuid.uuid4().hex[:6]}",
            "email": "owner@example.com",
            "phone": "+32470000001",
            "opening_time": "07:00",
            "closing_time": "17:00",
            "night_start": "23:00",
        }
        fields.update(customer_fields)
        customer = Customer(linked_technician=technician, **fields)
        db_session.add(customer)

        for position, phone in enumerate(backup_phones):
            db_session.add(
                BackupContact(customer=customer, phone=phone, position=position)
            )

        if overrides:
            db_session.add(EscalationConfig(customer=customer, **overrides))

        location = Location(customer=customer, name="Main warehouse")
        cold_cell = ColdCell(location=location, name="Freezer A")
        db_session.add_all([location, cold_cell])
        await db_session.commit()
        return cold_cell

    return _make


@pytest.fixture
def make_alert(db_session):
    """Factory creating an alert on a cold cell."""

    async def _make(
        cold_cell: ColdCell,
        triggered_at: datetime,
        layer: AlarmLayer = AlarmLayer.LAYER_1,
        time_slot: TimeSlot | None = None,
        status: AlertStatus = AlertStatus.ACTIVE,
        **fields,
    ) -> Alert:
        alert = Alert(
            cold_cell_id=cold_cell.id,
            alert_type=fields.pop("alert_type", AlertType.HIGH_TEMP),
            status=status,
            layer=layer,
            time_slot=time_slot,
            value=fields.pop("value", 9.5),
            threshold=fields.pop("threshold", 7.0),
            triggered_at=triggered_at,
            **fields,
        )
        db_session.add(alert)
        await db_session.commit()
        return alert

    return _make
