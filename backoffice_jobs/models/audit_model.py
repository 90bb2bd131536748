from datetime import datetime
from typing import Any, Optional

from pydantic import field_validator

from backoffice_jobs.models.base_model import RowModel, decode_json, ensure_utc


class AuditEntry(RowModel):
    """One row of ``audit_logs``"""

    id: str
    tenant_id: Optional[str] = None
    actor: str
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Any = None
    created_at: Optional[datetime] = None

    @field_validator("details", mode="before")
    @classmethod
    def _decode_details(cls, value):
        return decode_json(value)

    @field_validator("created_at", mode="after")
    @classmethod
    def _as_utc(cls, value):
        return ensure_utc(value)
