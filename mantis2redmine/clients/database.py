"""Shared SQLAlchemy plumbing for the Mantis and Redmine clients."""

from typing import Any

from sqlalchemy import Engine, MetaData, Table, create_engine
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import NoSuchTableError, OperationalError, SQLAlchemyError
from sqlalchemy.sql import Select

from mantis2redmine import config
from mantis2redmine.clients.exceptions import ClientConnectionError, QueryExecutionError
from mantis2redmine.type_definitions import DatabaseConfig, SourceRow

DEFAULT_DRIVER = "mysql+pymysql"


def build_url(db_config: DatabaseConfig) -> URL:
    """Build a connection URL from a database configuration section.

    A full ``url`` takes precedence over the individual keys.
    """
    if db_config.get("url"):
        return make_url(db_config["url"])

    return URL.create(
        DEFAULT_DRIVER,
        username=db_config.get("login"),
        password=db_config.get("pass"),
        host=db_config.get("host"),
        port=db_config.get("port"),
        database=db_config.get("name"),
        query={"charset": "utf8mb4"},
    )


class DatabaseClient:
    """Thin wrapper around a SQLAlchemy engine with reflected tables."""

    name = "database"

    def __init__(self, engine: Engine | None = None, db_config: DatabaseConfig | None = None) -> None:
        if engine is None:
            if db_config is None:
                msg = f"{self.name} client needs an engine or a configuration"
                raise ValueError(msg)
            engine = create_engine(build_url(db_config), pool_pre_ping=True)
        self.engine = engine
        self.metadata = MetaData()
        self._tables: dict[str, Table] = {}
        self.logger = config.logger

    def connect(self) -> None:
        """Check that the database is reachable."""
        try:
            with self.engine.connect():
                pass
        except OperationalError as e:
            msg = f"Cannot connect to {self.name} database: {e.orig}"
            raise ClientConnectionError(msg) from e
        self.logger.debug("Connected to %s database %s", self.name, self.engine.url.render_as_string())

    def table(self, name: str) -> Table:
        """Return the reflected table, loading it on first use."""
        if name not in self._tables:
            try:
                self._tables[name] = Table(name, self.metadata, autoload_with=self.engine)
            except NoSuchTableError as e:
                msg = f"Table {name} not found in {self.name} database"
                raise QueryExecutionError(msg) from e
            except OperationalError as e:
                msg = f"Cannot connect to {self.name} database: {e.orig}"
                raise ClientConnectionError(msg) from e
        return self._tables[name]

    def fetch_all(self, query: Select) -> list[SourceRow]:
        """Run a select and return its rows as dictionaries."""
        try:
            with self.engine.connect() as conn:
                return [dict(row) for row in conn.execute(query).mappings()]
        except OperationalError as e:
            msg = f"Cannot connect to {self.name} database: {e.orig}"
            raise ClientConnectionError(msg) from e
        except SQLAlchemyError as e:
            msg = f"Query against {self.name} database failed: {e}"
            raise QueryExecutionError(msg) from e

    def fetch_scalar(self, query: Select) -> Any:
        """Run a select returning a single value."""
        try:
            with self.engine.connect() as conn:
                return conn.execute(query).scalar()
        except SQLAlchemyError as e:
            msg = f"Query against {self.name} database failed: {e}"
            raise QueryExecutionError(msg) from e

    def fetch_column(self, query: Select) -> list[Any]:
        """Run a select and return its first column."""
        try:
            with self.engine.connect() as conn:
                return list(conn.execute(query).scalars())
        except SQLAlchemyError as e:
            msg = f"Query against {self.name} database failed: {e}"
            raise QueryExecutionError(msg) from e

