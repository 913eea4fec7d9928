"""Tests for the escalation, acknowledgement and active alarm endpoints."""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from coldchain.config import settings
from coldchain.models import (
    AlarmLayer,
    EscalationChannel,
    EscalationLog,
    EscalationRecipient,
)
from coldchain.services.escalation_engine import TickSummary


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", "s3cret")
    return "s3cret"


class TestCronSecret:
    @pytest.mark.asyncio
    async def test_missing_secret_is_rejected(self, client, cron_secret):
        response = await client.get("/api/alarms/active")

        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized"

    @pytest.mark.asyncio
    async def test_wrong_secret_is_rejected(self, client, cron_secret):
        response = await client.get(
            "/api/alarms/active", headers={"X-Cron-Secret": "nope"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_secret_header_accepted(self, client, cron_secret):
        response = await client.get(
            "/api/alarms/active", headers={"X-Cron-Secret": cron_secret}
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_secret_query_parameter_accepted(self, client, cron_secret):
        response = await client.get(f"/api/alarms/active?secret={cron_secret}")

        assert response.status_code == 200


class TestEscalateEndpoint:
    @pytest.mark.asyncio
    async def test_runs_one_tick(self, client):
        summary = TickSummary(
            alerts_checked=3, transitions=1, entry_dispatches=1, skipped=0, errors=1
        )
        with patch(
            "coldchain.routers.escalation.run_escalation_tick",
            new_callable=AsyncMock,
            return_value=summary,
        ) as mock_tick:
            response = await client.post("/api/escalate")

        assert response.status_code == 200
        mock_tick.assert_awaited_once()
        assert response.json() == {
            "success": True,
            "alerts_checked": 3,
            "transitions": 1,
            "entry_dispatches": 1,
            "skipped": 0,
            "errors": 1,
        }


class TestAcknowledgeEndpoint:
    @pytest.mark.asyncio
    async def test_acknowledge_with_camel_case_body(
        self, client, make_cold_cell, make_alert
    ):
        cold_cell = await make_cold_cell()
        alert = await make_alert(cold_cell, datetime.now(UTC))

        response = await client.post(
            "/api/alarm/acknowledge",
            json={"alarmId": str(alert.id), "acknowledgedBy": "+32470000001"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["alarm_id"] == str(alert.id)
        assert data["acknowledged_by"] == "+32470000001"

    @pytest.mark.asyncio
    async def test_acknowledged_by_defaults_to_unknown(
        self, client, make_cold_cell, make_alert
    ):
        cold_cell = await make_cold_cell()
        alert = await make_alert(cold_cell, datetime.now(UTC))

        response = await client.post(
            "/api/alarm/acknowledge", json={"alarm_id": str(alert.id)}
        )

        assert response.status_code == 200
        assert response.json()["acknowledged_by"] == "unknown"

    @pytest.mark.asyncio
    async def test_unknown_alarm_returns_404(self, client):
        response = await client.post(
            "/api/alarm/acknowledge", json={"alarm_id": str(uuid.uuid4())}
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Alarm not found"

    @pytest.mark.asyncio
    async def test_missing_alarm_id_returns_422(self, client):
        response = await client.post("/api/alarm/acknowledge", json={})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_acknowledged_alarm_leaves_active_list(
        self, client, make_cold_cell, make_alert
    ):
        cold_cell = await make_cold_cell()
        alert = await make_alert(cold_cell, datetime.now(UTC))

        await client.post("/api/alarm/acknowledge", json={"alarm_id": str(alert.id)})
        response = await client.get("/api/alarms/active")

        assert response.json()["count"] == 0


class TestActiveAlarms:
    @pytest.mark.asyncio
    async def test_lists_open_alarms_with_elapsed_minutes(
        self, client, make_cold_cell, make_alert
    ):
        cold_cell = await make_cold_cell()
        alert = await make_alert(
            cold_cell,
            datetime.now(UTC) - timedelta(minutes=25, seconds=10),
            layer=AlarmLayer.LAYER_2,
        )

        response = await client.get("/api/alarms/active")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        alarm = data["alarms"][0]
        assert alarm["id"] == str(alert.id)
        assert alarm["layer"] == "layer_2"
        assert alarm["cold_cell_name"] == "Freezer A"
        assert alarm["company_name"].startswith("Frost Foods")
        assert alarm["time_elapsed_minutes"] == 25

    @pytest.mark.asyncio
    async def test_empty(self, client):
        response = await client.get("/api/alarms/active")

        assert response.json() == {"alarms": [], "count": 0}


class TestEscalationTimeline:
    @pytest.mark.asyncio
    async def test_returns_log_rows_oldest_first(
        self, client, db_session, make_cold_cell, make_alert
    ):
        cold_cell = await make_cold_cell()
        alert = await make_alert(cold_cell, datetime.now(UTC))
        base = datetime.now(UTC)
        db_session.add_all(
            [
                EscalationLog(
                    alarm_id=alert.id,
                    layer=AlarmLayer.LAYER_2,
                    action="SMS sent to customer",
                    recipient_type=EscalationRecipient.CLIENT,
                    channel=EscalationChannel.SMS,
                    succeeded=False,
                    sent_at=base,
                ),
                EscalationLog(
                    alarm_id=alert.id,
                    layer=AlarmLayer.LAYER_1,
                    action="Email sent to customer",
                    recipient_type=EscalationRecipient.CLIENT,
                    channel=EscalationChannel.EMAIL,
                    succeeded=True,
                    sent_at=base - timedelta(minutes=20),
                ),
            ]
        )
        await db_session.commit()

        response = await client.get(f"/api/escalation/alerts/{alert.id}/timeline")

        assert response.status_code == 200
        data = response.json()
        assert data["alert_id"] == str(alert.id)
        assert data["count"] == 2
        assert [e["layer"] for e in data["events"]] == ["layer_1", "layer_2"]
        assert data["events"][1]["channel"] == "sms"
        assert data["events"][1]["succeeded"] is False

    @pytest.mark.asyncio
    async def test_unknown_alert_returns_404(self, client):
        response = await client.get(
            f"/api/escalation/alerts/{uuid.uuid4()}/timeline"
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Alert not found"
