"""Read and write access to a Redmine database."""

from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from mantis2redmine.clients.database import DatabaseClient
from mantis2redmine.clients.exceptions import WriteFailure
from mantis2redmine.type_definitions import TargetRow


class RedmineClient(DatabaseClient):
    """Query and insert surface over the Redmine schema.

    Every write is committed on its own; a run assumes it is the only
    writer, which also makes the ``MAX(id)`` fallback of :meth:`insert`
    safe.
    """

    name = "Redmine"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.write_count = 0

    def get_statuses(self) -> list[TargetRow]:
        t = self.table("issue_statuses")
        return self.fetch_all(select(t.c.id, t.c.name, t.c.position).order_by(t.c.position, t.c.id))

    def get_priorities(self) -> list[TargetRow]:
        t = self.table("enumerations")
        query = (
            select(t.c.id, t.c.name, t.c.position)
            .where(t.c.type == "IssuePriority")
            .order_by(t.c.position, t.c.id)
        )
        return self.fetch_all(query)

    def get_roles(self) -> list[TargetRow]:
        t = self.table("roles")
        return self.fetch_all(select(t.c.id, t.c.name, t.c.position).order_by(t.c.position, t.c.id))

    def get_projects(self) -> list[TargetRow]:
        t = self.table("projects")
        return self.fetch_all(select(t.c.id, t.c.name).order_by(t.c.id))

    def get_project_ids(self) -> list[int]:
        t = self.table("projects")
        return self.fetch_column(select(t.c.id).order_by(t.c.id))

    def get_versions(self) -> list[TargetRow]:
        t = self.table("versions")
        return self.fetch_all(select(t.c.id, t.c.name, t.c.project_id).order_by(t.c.id))

    def get_trackers(self) -> list[TargetRow]:
        t = self.table("trackers")
        return self.fetch_all(select(t.c.id, t.c.name).order_by(t.c.id))

    def get_tracker_ids(self) -> list[int]:
        t = self.table("trackers")
        return self.fetch_column(select(t.c.id).order_by(t.c.id))

    def get_categories(self) -> list[TargetRow]:
        t = self.table("issue_categories")
        return self.fetch_all(select(t.c.id, t.c.name, t.c.project_id).order_by(t.c.id))

    def get_users(self) -> list[TargetRow]:
        t = self.table("users")
        query = select(t.c.id, t.c.login, t.c.firstname, t.c.lastname, t.c.mail).order_by(t.c.id)
        return self.fetch_all(query)

    def max_value(self, table: str, column: str) -> int:
        """Return the largest value of a numeric column, 0 for an empty table."""
        t = self.table(table)
        return self.fetch_scalar(select(func.max(t.c[column]))) or 0

    def insert(self, table: str, values: dict[str, Any]) -> int:
        """Insert a row and return the id the database assigned to it."""
        t = self.table(table)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(insert(t).values(**values))
                new_id = result.inserted_primary_key[0] if result.inserted_primary_key else None
                if new_id is None:
                    new_id = conn.execute(select(func.max(t.c.id))).scalar()
        except SQLAlchemyError as e:
            msg = f"Insert into {table} failed: {e}"
            raise WriteFailure(msg, table=table) from e

        self.write_count += 1
        self.logger.debug("Inserted %s #%s", table, new_id)
        return int(new_id)

    def insert_row(self, table: str, values: dict[str, Any]) -> None:
        """Insert a row into a link table that has no id column."""
        t = self.table(table)
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(t).values(**values))
        except SQLAlchemyError as e:
            msg = f"Insert into {table} failed: {e}"
            raise WriteFailure(msg, table=table) from e

        self.write_count += 1

    def update(self, table: str, values: dict[str, Any], where: dict[str, Any]) -> int:
        """Update matching rows and return how many were changed."""
        t = self.table(table)
        query = update(t).values(**values)
        for column, value in where.items():
            query = query.where(t.c[column] == value)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(query)
        except SQLAlchemyError as e:
            msg = f"Update of {table} failed: {e}"
            raise WriteFailure(msg, table=table) from e

        self.write_count += 1
        return result.rowcount

    def fix_issue_root_ids(self) -> int:
        """Point every issue without a root at itself."""
        t = self.table("issues")
        query = update(t).where(t.c.root_id.is_(None)).values(root_id=t.c.id)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(query)
        except SQLAlchemyError as e:
            msg = f"Update of issues failed: {e}"
            raise WriteFailure(msg, table="issues") from e

        self.write_count += 1
        return result.rowcount
