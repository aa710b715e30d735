"""Postgres table sink backed by asyncpg (``pip install fluxmux[postgres]``)."""

import importlib
import json
from types import ModuleType
from typing import Any, Dict, List, Optional, Tuple

from fluxmux.common import ConfigurationError, SinkError, get_logger
from fluxmux.core import Message, Sink

logger = get_logger(__name__)

COLUMNS_QUERY = (
    "SELECT column_name, data_type FROM information_schema.columns WHERE table_name = $1"
)

# Pairs of type names treated as the same column type
TYPE_ALIASES = frozenset({
    frozenset({"integer", "int4"}),
    frozenset({"bigint", "int8"}),
    frozenset({"real", "float4"}),
    frozenset({"double precision", "float8"}),
    frozenset({"varchar", "text"}),
    frozenset({"character varying", "text"}),
    frozenset({"character varying", "varchar"}),
    frozenset({"char", "text"}),
    frozenset({"jsonb", "json"}),
})


def _load_asyncpg() -> ModuleType:
    try:
        return importlib.import_module("asyncpg")
    except ImportError as e:
        raise ConfigurationError(
            "Postgres sinks need the 'asyncpg' package; install fluxmux[postgres]"
        ) from e


def types_are_compatible(actual: str, required: str) -> bool:
    actual, required = actual.strip().lower(), required.strip().lower()
    return actual == required or frozenset({actual, required}) in TYPE_ALIASES


def quote_identifier(name: str) -> str:
    """Quote a possibly schema-qualified identifier."""
    return ".".join('"' + part.replace('"', '""') + '"' for part in name.split("."))


def _column_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def build_insert(table: str, row: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """Build a parameterized INSERT for the keys of ``row``."""
    columns = list(row.keys())
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    query = (
        f"INSERT INTO {quote_identifier(table)} "
        f"({', '.join(quote_identifier(c) for c in columns)}) VALUES ({placeholders})"
    )
    return query, [_column_value(row[c]) for c in columns]


class PostgresSink(Sink):
    """Inserts one row per message from the top-level keys of its JSON object.

    The connection is opened on first send. When ``column_types`` is given,
    the table's columns are checked against it once on connect.
    """

    def __init__(self, dsn: str, table: str, column_types: Optional[Dict[str, str]] = None) -> None:
        self.dsn = dsn
        self.table = table
        self.column_types = dict(column_types or {})
        self.name = f"postgres:{table}"
        self._conn: Any = None

    async def _connect(self) -> Any:
        if self._conn is not None:
            return self._conn

        asyncpg = _load_asyncpg()
        try:
            conn = await asyncpg.connect(self.dsn)
        except Exception as e:
            raise SinkError(f"Failed to connect to PostgreSQL: {e}", table=self.table) from e

        if self.column_types:
            try:
                await self._validate_table(conn)
            except BaseException:
                await conn.close()
                raise

        self._conn = conn
        logger.info(f"Postgres connected: {{'table': {self.table!r}, 'checked_columns': {len(self.column_types)}}}")
        return conn

    async def _validate_table(self, conn: Any) -> None:
        # information_schema stores the bare table name
        bare_table = self.table.split(".")[-1]
        try:
            rows = await conn.fetch(COLUMNS_QUERY, bare_table)
        except Exception as e:
            raise SinkError(f"Failed to query table schema: {e}", table=self.table) from e

        actual = {row["column_name"]: str(row["data_type"]).lower() for row in rows}
        for column, required in self.column_types.items():
            if column not in actual:
                raise SinkError(
                    f"Required column '{column}' of type '{required}' not found in table",
                    table=self.table, column=column,
                )
            if not types_are_compatible(actual[column], required):
                raise SinkError(
                    f"Column '{column}' has type '{actual[column]}' but required type is '{required}'",
                    table=self.table, column=column,
                )

    async def send(self, message: Message) -> None:
        conn = await self._connect()

        row = message.decoded()
        if not isinstance(row, dict):
            raise SinkError("Message payload must be a JSON object", table=self.table, message_id=message.id)
        if not row:
            raise SinkError("Message payload has no columns to insert", table=self.table, message_id=message.id)

        query, values = build_insert(self.table, row)
        try:
            await conn.execute(query, *values)
        except Exception as e:
            raise SinkError(f"Failed to insert row: {e}", table=self.table, message_id=message.id) from e

    async def flush(self) -> None:
        # Every insert is committed on its own
        return None

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()
