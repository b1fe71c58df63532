"""License period rollover job.

Intended for cron on the first day of each month (running it more often
is harmless):
 - issue last month's draft license invoices
 - bill every currently licensed employee for the new month
"""

from __future__ import annotations

from datetime import datetime, timezone

from regnskapdb.database import WriteSessionLocal
from regnskapdb.apps.licensing import services as license_services


def run() -> dict:
    db = WriteSessionLocal()
    try:
        return license_services.roll_license_period(db, now=datetime.now(timezone.utc))
    finally:
        db.close()


if __name__ == "__main__":
    result = run()
    print("License period rollover completed:", result)
