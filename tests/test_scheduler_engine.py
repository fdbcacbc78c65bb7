"""Tests for SchedulerEngine: live job management over APScheduler."""

import json
from pathlib import Path

import pytest

from src.app import Services, build_services
from src.scheduler.cron import CronExpressionError
from src.scheduler.engine import SchedulerEngine
from src.scheduler.models import JobDefinition
from src.scheduler.payloads import (
    CustomPayload,
    DailySummaryPayload,
    NotificationCheckPayload,
    PayloadError,
)
from tests.conftest import NOW, FakeConnection

pytestmark = pytest.mark.usefixtures("three_users")


class RecordingExecutor:
    """Records every execution; optionally fails."""

    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple] = []
        self._fail = fail

    async def execute(self, job_type, payload) -> None:
        self.calls.append((job_type, payload))
        if self._fail:
            msg = "job body exploded"
            raise RuntimeError(msg)


@pytest.fixture
def services(db_path: Path) -> Services:
    return build_services(db_path, clock=lambda: NOW)


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def engine(services: Services, executor: RecordingExecutor) -> SchedulerEngine:
    return SchedulerEngine(
        store=services.jobs,
        executor=executor,
        notifications=services.notifications,
        timezone="UTC",
        clock=lambda: NOW,
    )


def _make_job(
    job_id: str = "job1",
    cron_expression: str = "0 9 * * *",
    job_type: str = "daily_summary",
    **kwargs,
) -> JobDefinition:
    defaults = {"name": f"Job {job_id}", "created_at": "2025-01-01T00:00:00+00:00"}
    defaults.update(kwargs)
    return JobDefinition(
        id=job_id, cron_expression=cron_expression, job_type=job_type, **defaults
    )


async def _persist(services: Services, job: JobDefinition) -> JobDefinition:
    return await services.jobs.add_job(job)


# -- add_job ---------------------------------------------------------------------


async def test_add_recurring_job(engine: SchedulerEngine, services: Services) -> None:
    job = await _persist(services, _make_job())

    assert await engine.add_job(job) is True
    assert engine.list_active() == [
        {"id": "job1", "name": "Job job1", "jobType": "daily_summary", "isRunning": True}
    ]
    task = engine.get_task("job1")
    assert task is not None
    assert task.one_time is False

    stored = await services.jobs.get_job("job1")
    assert stored.next_run_at == "2025-06-02T09:00:00+00:00"


async def test_add_job_twice_keeps_one_task(engine: SchedulerEngine, services: Services) -> None:
    job = await _persist(services, _make_job())

    await engine.add_job(job)
    await engine.add_job(job)

    assert len(engine.list_active()) == 1


async def test_add_future_one_time_job(engine: SchedulerEngine, services: Services) -> None:
    job = await _persist(services, _make_job(cron_expression="30 10 24 12 *"))

    assert await engine.add_job(job) is True
    assert engine.get_task("job1").one_time is True
    stored = await services.jobs.get_job("job1")
    assert stored.next_run_at == "2025-12-24T10:30:00+00:00"


async def test_expired_one_time_runs_and_deactivates(
    engine: SchedulerEngine, services: Services, executor: RecordingExecutor
) -> None:
    job = await _persist(services, _make_job(cron_expression="0 9 1 1 *"))

    assert await engine.add_job(job) is False

    assert executor.calls == [("daily_summary", DailySummaryPayload())]
    assert engine.list_active() == []
    stored = await services.jobs.get_job("job1")
    assert stored.is_active is False
    assert stored.next_run_at is None


async def test_expired_one_time_deactivates_even_if_body_fails(services: Services) -> None:
    engine = SchedulerEngine(
        store=services.jobs, executor=RecordingExecutor(fail=True), clock=lambda: NOW
    )
    job = await _persist(services, _make_job(cron_expression="0 9 1 1 *"))

    assert await engine.add_job(job) is False
    assert (await services.jobs.get_job("job1")).is_active is False
    assert engine.list_active() == []


async def test_expired_one_time_broadcast_reaches_every_user(services: Services) -> None:
    data = json.dumps({"title": "New year", "message": "Happy new year"})
    job = await _persist(
        services, _make_job(cron_expression="0 0 1 1 *", job_type="notification_check", job_data=data)
    )

    await services.engine.add_job(job)

    for user_id in ("user1", "user2", "user3"):
        assert [n.title for n in await services.notifications.get_unread(user_id)] == ["New year"]


async def test_add_job_rejects_bad_expression(engine: SchedulerEngine) -> None:
    with pytest.raises(CronExpressionError):
        await engine.add_job(_make_job(cron_expression="not a cron"))
    assert engine.list_active() == []


async def test_unusable_payload_falls_back_to_empty(
    engine: SchedulerEngine, services: Services
) -> None:
    job = await _persist(
        services, _make_job(job_type="notification_check", job_data="{broken")
    )

    assert await engine.add_job(job) is True
    assert engine.get_task("job1").payload == NotificationCheckPayload()


async def test_payload_is_parsed_once_at_install(
    engine: SchedulerEngine, services: Services
) -> None:
    job = await _persist(services, _make_job(job_type="custom", job_data='{"n": 1}'))

    await engine.add_job(job)
    await services.jobs.update_job("job1", job_data='{"n": 2}')

    assert engine.get_task("job1").payload == CustomPayload(data={"n": 1})


# -- remove_job / update_job -------------------------------------------------------


async def test_remove_job(engine: SchedulerEngine, services: Services) -> None:
    await engine.add_job(await _persist(services, _make_job()))

    assert await engine.remove_job("job1") is True
    assert engine.list_active() == []
    assert await engine.remove_job("job1") is False


async def test_remove_unknown_job(engine: SchedulerEngine) -> None:
    assert await engine.remove_job("missing") is False


async def test_update_job_inactive_drops_task(engine: SchedulerEngine, services: Services) -> None:
    job = await _persist(services, _make_job())
    await engine.add_job(job)

    job.is_active = False
    assert await engine.update_job("job1", job) is False
    assert engine.get_task("job1") is None


async def test_update_job_inactive_without_task(engine: SchedulerEngine) -> None:
    assert await engine.update_job("job1", _make_job(is_active=False)) is False
    assert engine.list_active() == []


async def test_update_job_replaces_snapshot(engine: SchedulerEngine, services: Services) -> None:
    job = await _persist(services, _make_job())
    await engine.add_job(job)

    changed = _make_job(name="Renamed", cron_expression="*/10 * * * *", job_type="custom")
    assert await engine.update_job("job1", changed) is True

    task = engine.get_task("job1")
    assert task.name == "Renamed"
    assert task.cron_expression == "*/10 * * * *"
    assert task.job_type == "custom"
    assert len(engine.list_active()) == 1


async def test_deactivate_and_reactivate(engine: SchedulerEngine, services: Services) -> None:
    job = await _persist(services, _make_job(name="x"))
    await engine.add_job(job)
    assert [t["jobType"] for t in engine.list_active()] == ["daily_summary"]

    inactive = await services.jobs.set_active("job1", False)
    await engine.update_job("job1", inactive)
    assert engine.list_active() == []

    active = await services.jobs.set_active("job1", True)
    await engine.update_job("job1", active)
    assert [t["id"] for t in engine.list_active()] == ["job1"]


# -- Firing ------------------------------------------------------------------------


async def test_fire_recurring_records_run(
    engine: SchedulerEngine, services: Services, executor: RecordingExecutor
) -> None:
    await engine.add_job(await _persist(services, _make_job()))

    await engine._fire("job1")

    assert len(executor.calls) == 1
    stored = await services.jobs.get_job("job1")
    assert stored.last_run_at == NOW.isoformat()
    assert stored.next_run_at == "2025-06-02T09:00:00+00:00"
    assert stored.is_active is True
    assert engine.get_task("job1") is not None


async def test_fire_one_time_terminates_itself(
    engine: SchedulerEngine, services: Services, executor: RecordingExecutor
) -> None:
    await engine.add_job(await _persist(services, _make_job(cron_expression="0 9 24 12 *")))

    await engine._fire("job1")

    assert len(executor.calls) == 1
    assert engine.get_task("job1") is None
    stored = await services.jobs.get_job("job1")
    assert stored.is_active is False
    assert stored.last_run_at == NOW.isoformat()
    assert stored.next_run_at is None


async def test_fire_one_time_keeps_replacement_installed_mid_run(services: Services) -> None:
    class ReplacingExecutor(RecordingExecutor):
        async def execute(self, job_type, payload) -> None:
            await super().execute(job_type, payload)
            replacement = await services.jobs.update_job("job1", cron_expression="0 9 * * *")
            await engine.update_job("job1", replacement)

    engine = SchedulerEngine(
        store=services.jobs, executor=ReplacingExecutor(), timezone="UTC", clock=lambda: NOW
    )
    await engine.add_job(await _persist(services, _make_job(cron_expression="0 9 24 12 *")))

    await engine._fire("job1")

    task = engine.get_task("job1")
    assert task is not None
    assert task.one_time is False
    assert [t["id"] for t in engine.list_active()] == ["job1"]
    stored = await services.jobs.get_job("job1")
    assert stored.is_active is True
    assert stored.cron_expression == "0 9 * * *"


async def test_fire_failure_keeps_job_and_reports(services: Services) -> None:
    engine = SchedulerEngine(
        store=services.jobs,
        executor=RecordingExecutor(fail=True),
        notifications=services.notifications,
        clock=lambda: NOW,
    )
    admin = FakeConnection()
    other = FakeConnection()
    await services.registry.register("user1", admin)
    await services.registry.register("user2", other)
    await engine.add_job(await _persist(services, _make_job()))

    await engine._fire("job1")

    assert engine.get_task("job1") is not None
    assert (await services.jobs.get_job("job1")).last_run_at is None
    status = admin.of_type("cronjob_status")
    assert len(status) == 1
    assert status[0]["data"]["cronJobId"] == "job1"
    assert status[0]["data"]["status"] == "failed"
    assert other.of_type("cronjob_status") == []


async def test_failure_in_one_job_does_not_affect_another(services: Services) -> None:
    failing = RecordingExecutor(fail=True)
    engine = SchedulerEngine(store=services.jobs, executor=failing, clock=lambda: NOW)
    await engine.add_job(await _persist(services, _make_job("a")))
    await engine.add_job(await _persist(services, _make_job("b")))

    await engine._fire("a")
    await engine._fire("b")

    assert {t["id"] for t in engine.list_active()} == {"a", "b"}
    assert len(failing.calls) == 2


async def test_fire_unknown_job_is_noop(
    engine: SchedulerEngine, executor: RecordingExecutor
) -> None:
    await engine._fire("missing")
    assert executor.calls == []


# -- load_all / lifecycle ----------------------------------------------------------


async def test_load_all_installs_active_jobs(engine: SchedulerEngine, services: Services) -> None:
    await _persist(services, _make_job("a", created_at="2025-01-01T00:00:00+00:00"))
    await _persist(services, _make_job("b", created_at="2025-01-02T00:00:00+00:00"))
    await _persist(services, _make_job("off", is_active=False))

    assert await engine.load_all() == 2
    assert [t["id"] for t in engine.list_active()] == ["a", "b"]


async def test_load_all_isolates_bad_definitions(
    engine: SchedulerEngine, services: Services
) -> None:
    await _persist(services, _make_job("a", created_at="2025-01-01T00:00:00+00:00"))
    await _persist(
        services, _make_job("bad", cron_expression="99 * * * *", created_at="2025-01-02T00:00:00+00:00")
    )
    await _persist(services, _make_job("c", created_at="2025-01-03T00:00:00+00:00"))

    assert await engine.load_all() == 2
    assert [t["id"] for t in engine.list_active()] == ["a", "c"]


async def test_load_all_runs_expired_one_time_jobs(
    engine: SchedulerEngine, services: Services, executor: RecordingExecutor
) -> None:
    await _persist(services, _make_job("past", cron_expression="0 9 1 1 *"))

    await engine.load_all()

    assert len(executor.calls) == 1
    assert engine.list_active() == []
    assert await services.jobs.list_active_jobs() == []


async def test_start_and_shutdown(engine: SchedulerEngine, services: Services) -> None:
    await _persist(services, _make_job())

    await engine.start()
    assert engine.running is True
    assert len(engine.list_active()) == 1

    await engine.shutdown()
    assert engine.running is False
    assert engine.list_active() == []


async def test_shutdown_without_start(engine: SchedulerEngine, services: Services) -> None:
    await engine.add_job(await _persist(services, _make_job()))
    await engine.shutdown()
    assert engine.list_active() == []


# -- execute_direct ----------------------------------------------------------------


async def test_execute_direct_parses_payload(
    engine: SchedulerEngine, executor: RecordingExecutor
) -> None:
    await engine.execute_direct("custom", '{"n": 1}')
    assert executor.calls == [("custom", CustomPayload(data={"n": 1}))]


async def test_execute_direct_does_not_touch_bookkeeping(
    engine: SchedulerEngine, services: Services
) -> None:
    await _persist(services, _make_job())
    await engine.execute_direct("daily_summary")
    stored = await services.jobs.get_job("job1")
    assert stored.last_run_at is None


async def test_execute_direct_rejects_bad_payload(engine: SchedulerEngine) -> None:
    with pytest.raises(PayloadError):
        await engine.execute_direct("notification_check", '{"title": "missing message"}')


async def test_execute_direct_propagates_failure(services: Services) -> None:
    engine = SchedulerEngine(
        store=services.jobs, executor=RecordingExecutor(fail=True), clock=lambda: NOW
    )
    with pytest.raises(RuntimeError, match="exploded"):
        await engine.execute_direct("daily_summary")