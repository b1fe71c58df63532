"""Recurring task runner.

For deployments that run the API with TASK_SCHEDULER_ENABLED=false and
drive the engine from cron instead. Safe to run repeatedly: generation is
idempotent per (client, title, due day).
"""

from __future__ import annotations

from datetime import datetime, timezone

from regnskapdb.database import WriteSessionLocal
from regnskapdb.apps.tasks import services as task_services


def run() -> dict:
    db = WriteSessionLocal()
    try:
        result = task_services.process_recurring_tasks(db, now=datetime.now(timezone.utc))
        task_services.notify_generated_tasks(db, result.generated)
        return result.to_dict()
    finally:
        db.close()


if __name__ == "__main__":
    summary = run()
    print("Recurring task runner completed:", summary)
