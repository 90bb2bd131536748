import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from backoffice_jobs.constants.audit_actions import AuditActions, JOB_ENTITY_TYPE
from backoffice_jobs.core.logger import warning
from backoffice_jobs.core.setup_logger import db_logger
from backoffice_jobs.db.dialects import utcnow
from backoffice_jobs.models.audit_model import AuditEntry
from backoffice_jobs.repositories.base_repository import BaseRepository


class AuditRepository(BaseRepository[AuditEntry]):
    """Reads over ``audit_logs`` for operators and tests. Writes go through AuditSink."""

    table = "audit_logs"
    model = AuditEntry

    async def list_for_entity(self, entity_id: str, entity_type: str = JOB_ENTITY_TYPE) -> List[AuditEntry]:
        """Entries for one entity, oldest first"""
        return await self.fetch_all(
            """
            SELECT * FROM audit_logs
            WHERE entity_type = ? AND entity_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            [entity_type, entity_id],
        )

    async def error_rate_since(self, since: datetime) -> float:
        """Share of entries since ``since`` whose action marks an error or failure"""
        total = await self.db.count(
            "SELECT COUNT(*) AS count FROM audit_logs WHERE created_at >= ?",
            [since],
        )
        if total == 0:
            return 0.0
        errors = await self.db.count(
            """
            SELECT COUNT(*) AS count FROM audit_logs
            WHERE created_at >= ?
              AND (action LIKE '%error%' OR action LIKE '%fail%')
            """,
            [since],
        )
        return errors / total


class AuditSink:
    """
    Append-only lifecycle log.

    Every write is its own statement and a failed write is logged and dropped,
    so it can never undo or block the job transition it describes.
    """

    def __init__(self, db, clock=utcnow):
        self.db = db
        self.clock = clock

    async def record(
            self,
            tenant_id: Optional[str],
            actor: str,
            action: Union[AuditActions, str],
            entity_type: str,
            entity_id: Optional[str],
            details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Append one entry.

        Returns:
            True if the row was written, False if the write failed
        """
        action_name = action.value if isinstance(action, AuditActions) else action
        try:
            await self.db.run(
                """
                INSERT INTO audit_logs (id, tenant_id, actor, action, entity_type, entity_id, details, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    str(uuid.uuid4()), tenant_id, actor, action_name, entity_type, entity_id,
                    details or {}, self.clock(),
                ],
            )
            return True
        except Exception as e:
            warning(db_logger, "Failed to write audit entry", context={
                "action": action_name,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "error": str(e),
            })
            return False
