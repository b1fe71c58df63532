from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from regnskapdb.apps.accounts import models as account_models
from regnskapdb.apps.tasks import models as task_models
from regnskapdb.apps.tasks import services as task_services
from regnskapdb.apps.tasks.frequency import Frequency
from regnskapdb.apps.tasks.scheduler import RecurringTaskScheduler, scheduler_enabled

NOW = datetime(2024, 1, 2, 6, tzinfo=timezone.utc)


def _seed_due_template(session_factory) -> str:
    db = session_factory()
    try:
        tenant = account_models.Tenant(name="Fjord Regnskap AS")
        db.add(tenant)
        db.flush()
        client = account_models.Client(tenant_id=tenant.id, name="Bakeri Hansen AS")
        db.add(client)
        db.flush()
        template = task_models.RecurringTaskTemplate(
            tenant_id=tenant.id,
            client_id=client.id,
            name="MVA-melding",
            frequency=Frequency.QUARTERLY,
            next_due_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        db.add(template)
        db.commit()
        return template.id
    finally:
        db.close()


def _count_tasks(session_factory) -> int:
    db = session_factory()
    try:
        return db.query(task_models.TaskInstance).count()
    finally:
        db.close()


def test_trigger_now_runs_a_tick_and_records_status(session_factory):
    _seed_due_template(session_factory)
    scheduler = RecurringTaskScheduler(session_factory, interval_seconds=60, clock=lambda: NOW)

    result = scheduler.trigger_now()

    assert len(result.generated) == 1
    assert _count_tasks(session_factory) == 1
    status = scheduler.status()
    assert status["is_running"] is False
    assert status["last_run_at"] == NOW
    assert status["last_result"]["generated"] == 1
    assert status["interval_seconds"] == 60


def test_repeated_triggers_do_not_duplicate(session_factory):
    _seed_due_template(session_factory)
    scheduler = RecurringTaskScheduler(session_factory, clock=lambda: NOW)

    scheduler.trigger_now()
    second = scheduler.trigger_now()

    assert second.generated == []
    assert _count_tasks(session_factory) == 1


def test_trigger_now_propagates_errors(session_factory, monkeypatch):
    def _broken(db, *, now=None):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(task_services, "process_recurring_tasks", _broken)
    scheduler = RecurringTaskScheduler(session_factory, clock=lambda: NOW)

    with pytest.raises(RuntimeError):
        scheduler.trigger_now()
    assert scheduler.status()["last_run_at"] is None


def test_start_runs_first_tick_immediately_and_stop_ends_loop(session_factory):
    _seed_due_template(session_factory)
    ticked = threading.Event()
    generated = []

    def _on_generated(db, events):
        generated.extend(events)
        ticked.set()

    scheduler = RecurringTaskScheduler(
        session_factory,
        interval_seconds=3600,
        clock=lambda: NOW,
        on_generated=_on_generated,
    )

    assert scheduler.start() is True
    assert scheduler.start() is False
    assert ticked.wait(5)
    assert scheduler.status()["is_running"] is True

    assert scheduler.stop(timeout=5) is True
    status = scheduler.status()
    assert status["is_running"] is False
    assert status["next_check_at"] is None
    assert len(generated) == 1
    assert _count_tasks(session_factory) == 1


def test_background_loop_survives_a_failing_tick(session_factory, monkeypatch):
    calls = []
    done = threading.Event()

    def _broken(db, *, now=None):
        calls.append(now)
        done.set()
        raise RuntimeError("boom")

    monkeypatch.setattr(task_services, "process_recurring_tasks", _broken)
    scheduler = RecurringTaskScheduler(session_factory, interval_seconds=3600, clock=lambda: NOW)

    scheduler.start()
    assert done.wait(5)
    assert scheduler.stop(timeout=5) is True
    assert calls == [NOW]


def test_callback_failure_does_not_fail_the_tick(session_factory):
    _seed_due_template(session_factory)

    def _explode(db, events):
        raise RuntimeError("smtp down")

    scheduler = RecurringTaskScheduler(session_factory, clock=lambda: NOW, on_generated=_explode)

    result = scheduler.trigger_now()

    assert len(result.generated) == 1
    assert _count_tasks(session_factory) == 1


def test_interval_must_be_positive(session_factory):
    with pytest.raises(ValueError):
        RecurringTaskScheduler(session_factory, interval_seconds=0)


def test_scheduler_enabled_reads_environment(monkeypatch):
    monkeypatch.setenv("TASK_SCHEDULER_ENABLED", "false")
    assert scheduler_enabled() is False
    monkeypatch.setenv("TASK_SCHEDULER_ENABLED", "1")
    assert scheduler_enabled() is True
