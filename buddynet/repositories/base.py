from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    def _dialect_insert(self, model: Any):
        """Returns the dialect's ``insert`` construct, which supports ON CONFLICT."""
        dialect_name = self.session.get_bind().dialect.name
        if dialect_name == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        elif dialect_name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            raise NotImplementedError(
                f"Conditional inserts are not supported on '{dialect_name}'."
            )
        return insert(model)

    async def insert_if_absent(
        self, model: Any, conflict_columns: Sequence[str], **values: Any
    ) -> bool:
        """Inserts a row unless one already holds the same conflict key.

        Returns True when this call wrote the row. A concurrent writer that got
        there first turns this into a no-op rather than an IntegrityError.
        """
        stmt = (
            self._dialect_insert(model)
            .values(**values)
            .on_conflict_do_nothing(index_elements=list(conflict_columns))
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
