from datetime import datetime
from typing import Optional

from backoffice_jobs.models.base_model import ensure_utc

GLOBAL_HEALTH_ID = "global"


class HealthRepository:
    """The single ``system_health`` row the worker keeps fresh"""

    def __init__(self, db):
        self.db = db

    async def touch(self, now: datetime) -> None:
        await self.db.run(
            """
            INSERT INTO system_health (id, worker_last_seen_at, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                worker_last_seen_at = excluded.worker_last_seen_at,
                updated_at = excluded.updated_at
            """,
            [GLOBAL_HEALTH_ID, now, now],
        )

    async def last_seen(self) -> Optional[datetime]:
        row = await self.db.get(
            "SELECT worker_last_seen_at FROM system_health WHERE id = ?",
            [GLOBAL_HEALTH_ID],
        )
        value = row.get("worker_last_seen_at") if row else None
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return ensure_utc(value)
