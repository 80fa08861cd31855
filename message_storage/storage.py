import importlib.util
import logging
import os
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Generator, List, NamedTuple, Optional, Tuple

from sqlalchemy import create_engine, insert, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import declarative_base
from sqlalchemy.schema import CreateTable

from message_storage.config import settings
from message_storage.schemas import RequestContext

logger = logging.getLogger(__name__)

# Base class for SQLAlchemy models
Base = declarative_base()

TABLE_NAME = "messages"
INITIAL_STATUS = "new"


class StoreErrorKind(str, Enum):
    """Classes of failure a MessageStore records instead of raising."""
    DRIVER_UNAVAILABLE = "ErrDriverUnavailable"
    NO_PATH = "ErrNoPath"
    CANNOT_CREATE_FILE = "ErrCannotCreateFile"
    CONNECTION = "ErrConnection"
    SCHEMA_INIT = "ErrSchemaInit"
    NOT_ALIVE = "ErrNotAlive"
    PREPARE = "ErrPrepare"
    EXECUTE = "ErrExecute"


class StoreError(NamedTuple):
    kind: StoreErrorKind
    message: str


class QueryResult(NamedTuple):
    ok: bool
    rows: List[Dict[str, Any]]
    inserted_id: Optional[int]


FAILED_QUERY = QueryResult(ok=False, rows=[], inserted_id=None)


def sqlite_driver_available() -> bool:
    """Check that the sqlite3 DB-API module can be imported."""
    return importlib.util.find_spec("sqlite3") is not None


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _is_writable(path: str) -> bool:
    # os.access raises ValueError for paths with embedded NUL bytes
    try:
        return os.access(path, os.W_OK)
    except (OSError, ValueError):
        return False


def _engine_detail(error: SQLAlchemyError) -> str:
    # Driver message without SQLAlchemy's statement/background decoration
    if isinstance(error, DBAPIError) and error.orig is not None:
        return str(error.orig)
    return str(error)


class MessageStore:
    """
    SQLite-backed store for submitted messages.

    The database file and the messages table are set up once, in the
    constructor. No public method raises: failures are appended to an
    error list (see get_errors) and signalled through return values.

    Usage:
        store = MessageStore("messages.sqlite")
        if store.is_alive():
            stored = store.save("hello", "example", context)
            if not stored:
                print(store.get_errors())
    """

    def __init__(self, database_file: str = ""):
        self.database_file = database_file
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None
        self._errors: List[StoreError] = []
        self._errors_lock = threading.Lock()
        self._init_database(database_file)

    @classmethod
    def open(cls, database_file: str) -> Tuple[Optional["MessageStore"], Optional[List[str]]]:
        """
        Open a store, returning either the live store or its errors.

        Returns:
            (store, None) if the store is alive, (None, errors) otherwise
        """
        store = cls(database_file)
        if store.is_alive():
            return store, None
        errors = store.get_errors()
        store.close()
        return None, errors

    def __enter__(self) -> "MessageStore":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    # =========================================================================
    # Public API
    # =========================================================================

    def is_alive(self) -> bool:
        return self._connection is not None and not self._connection.closed

    def save(
        self,
        message: str,
        tag: str = "",
        context: Optional[RequestContext] = None
    ) -> Dict[str, Any]:
        """
        Insert one message row.

        Args:
            message: Message content (empty text is stored as-is)
            tag: Optional categorization
            context: Request metadata; missing fields are stored as ""

        Returns:
            Mapping of all eight columns plus the new id, or an empty dict
            on failure (details in get_errors()).
        """
        from message_storage.models import MESSAGE_COLUMNS, Message

        context = context or RequestContext()
        values = {
            "message": message,
            "status": INITIAL_STATUS,
            "tag": tag,
            "uri": context.uri or "",
            "server": context.server or "",
            "time": utc_timestamp(),
            "ip": context.ip or "",
            "agent": context.agent or "",
        }

        result = self._query_execute("save", insert(Message.__table__), values)
        if not result.ok:
            return {}

        stored = {column: values[column] for column in MESSAGE_COLUMNS}
        stored["id"] = result.inserted_id
        logger.info(f"Message stored: id={stored['id']}, tag={tag!r}")
        return stored

    def get_errors(self) -> List[str]:
        """All diagnostics recorded since construction, oldest first."""
        with self._errors_lock:
            return [error.message for error in self._errors]

    def get_error_kinds(self) -> List[StoreErrorKind]:
        with self._errors_lock:
            return [error.kind for error in self._errors]

    def close(self) -> None:
        """Release the connection and engine. The store is dead afterwards."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    # =========================================================================
    # Initialization
    # =========================================================================

    def _init_database(self, database_file: str) -> None:
        from message_storage.models import Message

        logger.debug(f"Initializing message store: {database_file!r}")

        if not sqlite_driver_available():
            self._add_error(
                StoreErrorKind.DRIVER_UNAVAILABLE,
                "initDatabase: sqlite driver not available"
            )
            return

        if not database_file:
            self._add_error(StoreErrorKind.NO_PATH, "initDatabase: Database file not defined")
            return

        if not _is_writable(database_file):
            self._create_database(database_file)
        if not _is_writable(database_file):
            self._add_error(
                StoreErrorKind.CANNOT_CREATE_FILE,
                f"initDatabase: Create Database failed: {database_file}"
            )
            return

        try:
            # check_same_thread=False lets a store be handed between threads
            self._engine = create_engine(
                f"sqlite:///{database_file}",
                connect_args={"check_same_thread": False},
                echo=False,
            )
            self._connection = self._engine.connect()
        except SQLAlchemyError as e:
            self.close()
            self._add_error(StoreErrorKind.CONNECTION, f"initDatabase: {_engine_detail(e)}")
            return

        if self._has_table():
            logger.debug(f"Table {TABLE_NAME} found in {database_file}")
            return

        logger.info(f"Creating table {TABLE_NAME} in {database_file}")
        if self._query_bool("initDatabase", CreateTable(Message.__table__)):
            return

        self.close()
        self._add_error(
            StoreErrorKind.SCHEMA_INIT,
            f"initDatabase: Can Not Create Table: {TABLE_NAME}"
        )

    def _create_database(self, database_file: str) -> bool:
        try:
            Path(database_file).touch()
        except (OSError, ValueError) as e:
            logger.warning(f"Could not create database file {database_file!r}: {e}")
        return _is_writable(database_file)

    def _has_table(self) -> bool:
        rows = self._query_rows(
            "initDatabase",
            text("SELECT name FROM sqlite_master WHERE type = :type AND name = :name"),
            {"type": "table", "name": TABLE_NAME},
        )
        return bool(rows) and rows[0].get("name") == TABLE_NAME

    # =========================================================================
    # Query Helpers
    # =========================================================================

    def _query_rows(self, operation: str, statement, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self._query_execute(operation, statement, params).rows

    def _query_bool(self, operation: str, statement, params: Optional[Dict[str, Any]] = None) -> bool:
        return self._query_execute(operation, statement, params).ok

    def _query_execute(self, operation: str, statement, params: Optional[Dict[str, Any]] = None) -> QueryResult:
        """
        Execute one statement in its own transaction.

        Every database access goes through here, so the "not alive" guard
        and the error message format live in one place.

        Args:
            operation: Name of the calling operation, used as error prefix
            statement: SQLAlchemy executable (text, insert or DDL construct)
            params: Bound parameter values

        Returns:
            QueryResult with the fetched rows (read statements) or the new
            primary key (inserts); FAILED_QUERY on any error.
        """
        prefix = f"{operation}/queryExecute"
        if not self.is_alive():
            self._add_error(StoreErrorKind.NOT_ALIVE, f"{prefix}: database not alive")
            return FAILED_QUERY

        try:
            with self._connection.begin():
                if params:
                    result = self._connection.execute(statement, params)
                else:
                    result = self._connection.execute(statement)
                rows = [dict(row) for row in result.mappings()] if result.returns_rows else []
                inserted_id = None
                if getattr(statement, "is_insert", False):
                    inserted_id = result.inserted_primary_key[0]
        except DBAPIError as e:
            self._add_error(StoreErrorKind.EXECUTE, f"{prefix}: execute failed: {_engine_detail(e)}")
            return FAILED_QUERY
        except SQLAlchemyError as e:
            self._add_error(StoreErrorKind.PREPARE, f"{prefix}: prepare failed: {e}")
            return FAILED_QUERY
        except UnicodeError as e:
            # sqlite3 raises this unwrapped when binding text it cannot encode
            self._add_error(StoreErrorKind.EXECUTE, f"{prefix}: execute failed: {e}")
            return FAILED_QUERY

        return QueryResult(ok=True, rows=rows, inserted_id=inserted_id)

    def _add_error(self, kind: StoreErrorKind, message: str) -> None:
        logger.error(message)
        with self._errors_lock:
            self._errors.append(StoreError(kind=kind, message=message))


def get_store() -> Generator[MessageStore, None, None]:
    """
    Dependency to get a message store for the current request.
    Yields a store and ensures it's closed after use.
    """
    store = MessageStore(settings.DATABASE_FILE)
    try:
        yield store
    finally:
        store.close()
