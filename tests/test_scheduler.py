"""Tests for the background escalation scheduler."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from coldchain.config import settings
from coldchain.services import scheduler as scheduler_module
from coldchain.services.escalation_engine import TickSummary


@pytest.fixture(autouse=True)
def reset_scheduler():
    scheduler_module.scheduler = None
    yield
    scheduler_module.scheduler = None


class TestStartScheduler:
    def test_registers_escalation_job(self, monkeypatch):
        monkeypatch.setattr(settings, "escalation_check_enabled", True)
        monkeypatch.setattr(settings, "escalation_check_interval_seconds", 60)

        with patch(
            "coldchain.services.scheduler.AsyncIOScheduler"
        ) as mock_scheduler_cls:
            instance = MagicMock()
            mock_scheduler_cls.return_value = instance

            result = scheduler_module.start_scheduler()

        assert result is instance
        instance.start.assert_called_once()
        kwargs = instance.add_job.call_args.kwargs
        assert kwargs["id"] == "escalation_check"
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True
        assert kwargs["trigger"].interval.total_seconds() == 60
        assert instance.add_job.call_args.args[0] is scheduler_module.check_escalations

    def test_disabled_check_registers_no_job(self, monkeypatch):
        monkeypatch.setattr(settings, "escalation_check_enabled", False)

        with patch(
            "coldchain.services.scheduler.AsyncIOScheduler"
        ) as mock_scheduler_cls:
            instance = MagicMock()
            mock_scheduler_cls.return_value = instance

            scheduler_module.start_scheduler()

        instance.add_job.assert_not_called()
        instance.start.assert_called_once()

    def test_second_start_returns_running_scheduler(self):
        running = MagicMock()
        scheduler_module.scheduler = running

        assert scheduler_module.start_scheduler() is running
        running.start.assert_not_called()


class TestStopScheduler:
    def test_stop_shuts_down_and_clears(self):
        running = MagicMock()
        scheduler_module.scheduler = running

        scheduler_module.stop_scheduler()

        running.shutdown.assert_called_once_with(wait=False)
        assert scheduler_module.get_scheduler() is None

    def test_stop_without_scheduler_is_noop(self):
        scheduler_module.stop_scheduler()

        assert scheduler_module.get_scheduler() is None


class TestCheckEscalations:
    @pytest.mark.asyncio
    async def test_runs_tick(self):
        with patch(
            "coldchain.services.scheduler.run_escalation_tick",
            new_callable=AsyncMock,
            return_value=TickSummary(alerts_checked=2, transitions=1),
        ) as mock_tick:
            await scheduler_module.check_escalations()

        mock_tick.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_tick_failure_is_logged_not_raised(self):
        with patch(
            "coldchain.services.scheduler.run_escalation_tick",
            new_callable=AsyncMock,
            side_effect=RuntimeError("database gone"),
        ):
            await scheduler_module.check_escalations()
