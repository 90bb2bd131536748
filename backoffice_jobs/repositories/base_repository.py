from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from backoffice_jobs.db.database import QueryExecutor
from backoffice_jobs.models.base_model import RowModel

ModelType = TypeVar("ModelType", bound=RowModel)


class BaseRepository(Generic[ModelType]):
    """
    Row access shared by the repositories.

    ``db`` is either the Database or an open Transaction, so a repository can
    take part in a caller's transaction without knowing about it.
    """

    table: str
    model: Type[ModelType]

    def __init__(self, db: QueryExecutor):
        self.db = db

    async def get(self, id: Any) -> Optional[ModelType]:
        """
        Get a record by id.
        """
        row = await self.db.get(f"SELECT * FROM {self.table} WHERE id = ?", [id])
        return self.model.from_row(row) if row is not None else None

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[ModelType]:
        rows = await self.db.all(sql, params)
        return [self.model.from_row(row) for row in rows]

    async def count(self) -> int:
        return await self.db.count(f"SELECT COUNT(*) AS count FROM {self.table}")
