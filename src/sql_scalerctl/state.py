"""
Persistent scaling state for sql-scalerctl

Defines the StateStore interface and its PostgreSQL implementation. Each
managed instance has exactly one state record, created lazily on first read.
Records stored under the legacy per-instance path are moved to the canonical
per-project path the first time they are found.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from psycopg import sql

from .constants import TABLE_SCALER_STATE
from .db import DatabaseRegistry
from .errors import StateStoreError
from .log import get_logger
from .models import ScalingState, StateKey

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Column name -> storage type. Only these fields are ever read or written.
STATE_COLUMNS: dict[str, str] = {
    "last_scaling_timestamp": "timestamp",
    "created_on": "timestamp",
    "updated_on": "timestamp",
    "last_scaling_complete_timestamp": "timestamp",
    "scaling_operation_id": "string",
    "scaling_requested_size": "int",
    "scaling_previous_size": "int",
    "scaling_method": "string",
}


def now_millis() -> int:
    return (datetime.now(UTC) - EPOCH) // timedelta(milliseconds=1)


def millis_to_datetime(millis: int | None) -> datetime | None:
    if millis is None:
        return None
    return EPOCH + timedelta(milliseconds=int(millis))


def datetime_to_millis(value: datetime | None) -> int:
    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - EPOCH) // timedelta(milliseconds=1)


def convert_from_storage(row: dict[str, Any]) -> ScalingState:
    """
    Build a ScalingState from a stored row

    Missing or NULL timestamp columns read as 0, other missing columns as None.
    Unknown columns are ignored.
    """
    values: dict[str, Any] = {}
    for name, column_type in STATE_COLUMNS.items():
        value = row.get(name)
        if column_type == "timestamp":
            values[name] = datetime_to_millis(value)
        elif column_type == "int":
            values[name] = int(value) if value is not None else None
        else:
            values[name] = value
    return ScalingState(**values)


def convert_to_storage(state: ScalingState) -> dict[str, Any]:
    """
    Convert a ScalingState to column values for an update

    Timestamps become timezone-aware datetimes. ``created_on`` is never
    written by an update.
    """
    data = state.to_dict()
    row: dict[str, Any] = {}
    for name, column_type in STATE_COLUMNS.items():
        if name == "created_on" or name not in data:
            continue
        value = data[name]
        if column_type == "timestamp":
            row[name] = millis_to_datetime(value)
        elif column_type == "int":
            row[name] = int(value) if value is not None else None
        else:
            row[name] = value
    return row


class StateStore(ABC):
    """
    Storage for per-instance ScalingState records

    Read and write failures raise StateStoreError; nothing is retried locally.
    """

    @abstractmethod
    def get(self, key: StateKey) -> ScalingState:
        """
        Read the state for ``key``

        Creates a default record if none exists, migrating a legacy record
        instead when one is found.
        """

    @abstractmethod
    def update_state(self, key: StateKey, state: ScalingState) -> None:
        """
        Write ``state`` for ``key``

        Sets ``updated_on`` to the current time and never changes
        ``created_on``.
        """

    @abstractmethod
    def close(self) -> None:
        """Release resources held for this store"""


class PostgresStateStore(StateStore):
    """StateStore backed by one PostgreSQL table per storage account"""

    def __init__(
        self,
        registry: DatabaseRegistry,
        table: str = TABLE_SCALER_STATE,
        clock: Callable[[], int] = now_millis,
    ):
        self._registry = registry
        self._table = table
        self._clock = clock

    def _database(self, key: StateKey):
        database = self._registry.get(key.state_project_id)
        database.ensure_state_table(self._table)
        return database

    def get(self, key: StateKey) -> ScalingState:
        database = self._database(key)
        row = database.fetch_one(
            sql.SQL("SELECT * FROM {} WHERE doc_path = %s").format(
                sql.Identifier(self._table)
            ),
            (key.doc_path,),
        )

        if row is None:
            row = self._migrate_legacy_record(key)

        if row is None:
            return self._init(key)

        return convert_from_storage(row)

    def _init(self, key: StateKey) -> ScalingState:
        now = self._clock()
        state = ScalingState(created_on=now, updated_on=now)
        row = convert_to_storage(state)
        row["created_on"] = millis_to_datetime(now)
        columns = ["doc_path", *row.keys()]

        database = self._database(key)
        inserted = database.execute(
            sql.SQL(
                "INSERT INTO {} ({}) VALUES ({}) ON CONFLICT (doc_path) DO NOTHING"
            ).format(
                sql.Identifier(self._table),
                sql.SQL(", ").join(map(sql.Identifier, columns)),
                sql.SQL(", ").join(sql.Placeholder() * len(columns)),
            ),
            (key.doc_path, *row.values()),
        )
        if inserted == 0:
            # Another invocation created the record first
            existing = database.fetch_one(
                sql.SQL("SELECT * FROM {} WHERE doc_path = %s").format(
                    sql.Identifier(self._table)
                ),
                (key.doc_path,),
            )
            if existing is not None:
                return convert_from_storage(existing)

        logger.info(
            "Initialized scaling state",
            extra={"doc_path": key.doc_path, "account_id": key.state_project_id},
        )
        return state

    def _migrate_legacy_record(self, key: StateKey) -> dict[str, Any] | None:
        """
        Move a record from the legacy path to the canonical one

        Returns the migrated row, or None when there was nothing to migrate.
        Failures propagate; a fresh record must never shadow a legacy one.
        """
        table = sql.Identifier(self._table)
        try:
            with self._database(key).transaction() as cur:
                cur.execute(
                    sql.SQL("SELECT * FROM {} WHERE doc_path = %s FOR UPDATE").format(
                        table
                    ),
                    (key.legacy_doc_path,),
                )
                legacy = cur.fetchone()
                if legacy is None:
                    return None

                logger.info(
                    "Migrating state record",
                    extra={"from": key.legacy_doc_path, "to": key.doc_path},
                )
                columns = [name for name in STATE_COLUMNS if name in legacy]
                cur.execute(
                    sql.SQL(
                        "INSERT INTO {} (doc_path, {}) VALUES (%s, {}) "
                        "ON CONFLICT (doc_path) DO NOTHING"
                    ).format(
                        table,
                        sql.SQL(", ").join(map(sql.Identifier, columns)),
                        sql.SQL(", ").join(sql.Placeholder() * len(columns)),
                    ),
                    (key.doc_path, *(legacy[name] for name in columns)),
                )
                cur.execute(
                    sql.SQL("DELETE FROM {} WHERE doc_path = %s").format(table),
                    (key.legacy_doc_path,),
                )
                return legacy
        except StateStoreError as e:
            logger.error(
                "Failed to migrate state record",
                extra={"from": key.legacy_doc_path, "to": key.doc_path, "error": str(e)},
            )
            raise

    def update_state(self, key: StateKey, state: ScalingState) -> None:
        state.updated_on = self._clock()
        row = convert_to_storage(state)

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(name)) for name in row
        )
        updated = self._database(key).execute(
            sql.SQL("UPDATE {} SET {} WHERE doc_path = %s").format(
                sql.Identifier(self._table), assignments
            ),
            (*row.values(), key.doc_path),
        )
        if updated == 0:
            raise StateStoreError(f"No scaling state record at {key.doc_path}")

        logger.debug(
            "Scaling state updated",
            extra={
                "doc_path": key.doc_path,
                "scaling_operation_id": state.scaling_operation_id,
            },
        )

    def close(self) -> None:
        # Pools are shared per storage account and outlive a single request
        logger.trace("State store closed")
