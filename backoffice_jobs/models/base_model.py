import json
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


def decode_json(value: Any) -> Any:
    """Rows carry structured columns as JSON text; anything else passes through"""
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, str):
        if not value:
            return None
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """The embedded engine returns naive timestamps that are stored in UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RowModel(BaseModel):
    """Base for read models built from query rows"""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    @classmethod
    def from_row(cls, row):
        return cls.model_validate(row)
