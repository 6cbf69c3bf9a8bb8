"""SQLite database client wrapper with document-style CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, NoReturn

import aiosqlite

from worksync.core.config import constants, settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when a database operation fails."""


class RecordNotFoundError(KeyError):
    """Raised when a record does not exist."""


class StaleRecordError(DatabaseError):
    """Raised when a conditional update finds the record no longer matches."""


# Reference fields stored as integers but exposed as string ids
_REFERENCE_FIELDS = {"id", "assigned_to", "created_by"}

# Fields stored as 0/1 but exposed as booleans
_BOOL_FIELDS = {"is_running"}

# Fields stored as JSON text
_JSON_FIELDS = {"permissions"}


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse a stored ISO-8601 timestamp into an aware UTC datetime."""
    if value is None or value == "":
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _convert_record(record: dict[str, Any]) -> dict[str, Any]:
    """Convert stored column values back into document values."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and not isinstance(value, bool) and (key in _REFERENCE_FIELDS or key.endswith("_id")):
            converted[key] = str(value)
        elif key in _BOOL_FIELDS and value is not None:
            converted[key] = bool(value)
        elif key in _JSON_FIELDS and isinstance(value, str):
            converted[key] = json.loads(value)
    return converted


def _to_column_value(value: Any) -> Any:
    """Convert a document value to something SQLite can store."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict | list | tuple | set | frozenset):
        return json.dumps(sorted(value) if isinstance(value, set | frozenset) else value)
    return value


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        return "%" + value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"

    # Leading zeros stay text so "007" still matches a stored "007"
    if value.isascii() and value.isdigit() and str(int(value)) == value:
        return int(value)
    if value.isascii() and value.replace(".", "", 1).isdigit() and not value.startswith("0"):
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


@dataclass(frozen=True)
class FilterComparison:
    """One ``field op "value"`` term of a filter query."""

    field: str
    op: str
    value: str


@dataclass(frozen=True)
class FilterGroup:
    """Terms joined by ``&&`` (AND) or ``||`` (OR)."""

    op: str
    operands: tuple["FilterComparison | FilterGroup", ...]


FilterNode = FilterComparison | FilterGroup

_FILTER_TOKEN = re.compile(
    r"""
    \s*(?:
        (?P<paren>[()])
      | (?P<logic>&&|\|\|)
      | (?P<field>[A-Za-z_]\w*)\s*(?P<op>!=|>=|<=|=|>|<|~)\s*
        (?P<value>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    )
    """,
    re.VERBOSE | re.DOTALL,
)


def _unquote(token: str) -> str:
    """Decode a quoted filter value, honouring backslash escapes."""
    if token[0] == '"':
        # sanitize_param escapes with json.dumps
        return json.loads(token, strict=False)
    return re.sub(r"\\(.)", r"\1", token[1:-1], flags=re.DOTALL)


def _tokenize_filter(filter_query: str) -> list[str | FilterComparison]:
    tokens: list[str | FilterComparison] = []
    pos = 0
    while filter_query[pos:].strip():
        match = _FILTER_TOKEN.match(filter_query, pos)
        if not match:
            msg = f"Invalid filter syntax: {filter_query}"
            raise ValueError(msg)
        if match.group("paren") or match.group("logic"):
            tokens.append(match.group("paren") or match.group("logic"))
        else:
            tokens.append(FilterComparison(match.group("field"), match.group("op"), _unquote(match.group("value"))))
        pos = match.end()
    return tokens


class _FilterParser:
    """Recursive descent over filter tokens; ``&&`` binds tighter than ``||``."""

    def __init__(self, filter_query: str):
        self._query = filter_query
        self._tokens = _tokenize_filter(filter_query)
        self._pos = 0

    def parse(self) -> FilterNode:
        node = self._expression()
        if self._pos != len(self._tokens):
            self._fail()
        return node

    def _fail(self) -> NoReturn:
        msg = f"Invalid filter syntax: {self._query}"
        raise ValueError(msg)

    def _peek(self) -> str | FilterComparison | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _joined(self, separator: str, op: str, operand) -> FilterNode:
        operands = [operand()]
        while self._peek() == separator:
            self._pos += 1
            operands.append(operand())
        return operands[0] if len(operands) == 1 else FilterGroup(op, tuple(operands))

    def _expression(self) -> FilterNode:
        return self._joined("||", "OR", self._conjunction)

    def _conjunction(self) -> FilterNode:
        return self._joined("&&", "AND", self._term)

    def _term(self) -> FilterNode:
        token = self._peek()
        self._pos += 1
        if isinstance(token, FilterComparison):
            return token
        if token == "(":
            node = self._expression()
            if self._peek() != ")":
                self._fail()
            self._pos += 1
            return node
        self._fail()


def parse_filter_expression(filter_query: str) -> FilterNode | None:
    """Parse filter syntax into a tree of comparisons and AND/OR groups.

    Values are quoted with ``"`` or ``'`` and may contain any character,
    including quotes, escaped with a backslash.

    Raises:
        ValueError: If the query is not valid filter syntax
    """
    if not filter_query or not filter_query.strip():
        return None
    return _FilterParser(filter_query).parse()


def _comparison_to_sql(comparison: FilterComparison) -> tuple[str, str | int | float | bool | None]:
    _validate_collection_name(comparison.field)
    sql_op = _get_sql_operator(comparison.op)
    if sql_op == "LIKE":
        return f"{comparison.field} LIKE ? ESCAPE '\\'", _parse_value(comparison.value, is_like=True)
    return f"{comparison.field} {sql_op} ?", _parse_value(comparison.value)


def _node_to_sql(node: FilterNode) -> tuple[str, list[str | int | float | bool | None]]:
    if isinstance(node, FilterComparison):
        condition, value = _comparison_to_sql(node)
        return condition, [value]

    conditions = []
    params: list[str | int | float | bool | None] = []
    for operand in node.operands:
        condition, operand_params = _node_to_sql(operand)
        conditions.append(condition)
        params.extend(operand_params)
    return f"({f' {node.op} '.join(conditions)})", params


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | bool | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    node = parse_filter_expression(filter_query)
    if node is None:
        return "", []
    return _node_to_sql(node)


def _parse_sort(sort: str) -> str:
    """Translate "-field", "+field" or "field [ASC|DESC]" into an ORDER BY clause."""
    default = "id ASC"
    if not sort:
        return default

    sort = sort.strip()
    prefixed = re.match(r"^([+-])([A-Za-z_][A-Za-z0-9_]*)$", sort)
    if prefixed:
        direction = "DESC" if prefixed.group(1) == "-" else "ASC"
        return f"{prefixed.group(2)} {direction}, id {direction}"

    if re.match(r"^[A-Za-z_][A-Za-z0-9_]*\s*(ASC|DESC)?$", sort, re.IGNORECASE):
        return sort

    logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
    return default


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()
_transaction_conn: ContextVar[aiosqlite.Connection | None] = ContextVar("_transaction_conn", default=None)


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get the active transaction connection, or a cached one for the current thread, loop, and db path."""
    tx_conn = _transaction_conn.get()
    if tx_conn is not None:
        return tx_conn

    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.execute("PRAGMA busy_timeout = 5000")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            if cache_key in _db_connections:
                conn = _db_connections.pop(cache_key)
                await conn.close()
                logger.info(
                    "Closed SQLite connection",
                    extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
                )
    except Exception as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


async def _commit(conn: aiosqlite.Connection) -> None:
    """Commit unless the connection belongs to an open transaction block."""
    if _transaction_conn.get() is None:
        await conn.commit()


async def _rollback(conn: aiosqlite.Connection | None) -> None:
    """Discard a failed write unless the connection belongs to an open transaction block."""
    if conn is not None and _transaction_conn.get() is None and conn.in_transaction:
        await conn.rollback()


@asynccontextmanager
async def transaction(*, db_path: str | None = None) -> AsyncIterator[None]:
    """Run the enclosed operations atomically on a dedicated connection.

    Every db_client call inside the block uses the same connection. The block
    commits on success and rolls back on any exception, which is re-raised.
    Nested blocks join the outermost transaction.
    """
    if _transaction_conn.get() is not None:
        yield
        return

    path = get_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(str(path), isolation_level=None)
    await conn.execute("PRAGMA foreign_keys = ON")
    await conn.execute("PRAGMA busy_timeout = 5000")

    token = _transaction_conn.set(conn)
    try:
        await conn.execute("BEGIN IMMEDIATE")
        try:
            yield
        except BaseException:
            await conn.execute("ROLLBACK")
            logger.warning("Transaction rolled back", extra={"db_path": str(path)})
            raise
        await conn.execute("COMMIT")
    finally:
        _transaction_conn.reset(token)
        await conn.close()


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from worksync.core import schema  # noqa: PLC0415 - schema imports this module

    await schema.init_db(db_path=db_path)


def _raise_db_error(e: Exception, *, operation: str, collection: str) -> None:
    """Translate a low-level failure into DatabaseError."""
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        msg = f"Table '{collection}' does not exist. Call init_db() first."
        logger.error("Table not found", extra={"collection": collection})
        raise DatabaseError(msg) from e
    logger.error(f"{operation}_failed", extra={"collection": collection, "error": str(e)})
    msg = f"Failed to {operation.replace('_', ' ')} in {collection}: {e}"
    raise DatabaseError(msg) from e


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    conn = None
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        now = utc_now_iso()
        document = {"created": now, "updated": now, **data}

        columns = list(document.keys())
        placeholders = ", ".join("?" for _ in columns)
        values = [_to_column_value(document[key]) for key in columns]

        query = f"INSERT INTO {collection} ({', '.join(columns)}) VALUES ({placeholders})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await _commit(conn)

        record_id = cursor.lastrowid
        result = await get_record(collection=collection, record_id=str(record_id))

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return result
    except (RecordNotFoundError, DatabaseError):
        raise
    except Exception as e:
        await _rollback(conn)
        _raise_db_error(e, operation="create_record", collection=collection)
        raise


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    if not str(record_id).isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        columns = [description[0] for description in cursor.description]
        record = dict(zip(columns, row, strict=True))

        logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
        return _convert_record(record)
    except RecordNotFoundError:
        raise
    except Exception as e:
        _raise_db_error(e, operation="get_record", collection=collection)
        raise


async def update_record(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any],
    if_match: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Update a record by ID and return the updated record.

    When ``if_match`` is given, the update only applies while every listed field
    still holds the given value; otherwise StaleRecordError is raised.
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)
    if not str(record_id).isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    conn = None
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        document = {**data, "updated": utc_now_iso()}
        set_clause = ", ".join(f"{key} = ?" for key in document)
        values = [_to_column_value(val) for val in document.values()]

        where = ["id = ?"]
        values.append(int(record_id))
        for key, expected in (if_match or {}).items():
            _validate_collection_name(key)
            if expected is None:
                where.append(f"{key} IS NULL")
            else:
                where.append(f"{key} = ?")
                values.append(_to_column_value(expected))

        query = f"UPDATE {collection} SET {set_clause} WHERE {' AND '.join(where)}"  # noqa: S608 - names are validated
        cursor = await conn.execute(query, values)
        await _commit(conn)

        if cursor.rowcount == 0:
            # Distinguish a missing record from a failed precondition
            await get_record(collection=collection, record_id=record_id)
            msg = f"Record {record_id} in {collection} changed before update"
            raise StaleRecordError(msg)

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return await get_record(collection=collection, record_id=record_id)
    except (RecordNotFoundError, DatabaseError):
        raise
    except Exception as e:
        await _rollback(conn)
        _raise_db_error(e, operation="update_record", collection=collection)
        raise


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    if not str(record_id).isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    conn = None
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        await _commit(conn)

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    except RecordNotFoundError:
        raise
    except Exception as e:
        await _rollback(conn)
        _raise_db_error(e, operation="delete_record", collection=collection)


async def delete_records(*, collection: str, filter_query: str) -> int:
    """Delete every record matching the filter and return how many were removed."""
    if not filter_query or not filter_query.strip():
        msg = "delete_records requires a filter"
        raise ValueError(msg)

    conn = None
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = parse_filter(filter_query)
        query = f"DELETE FROM {collection} WHERE {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        await _commit(conn)

        logger.info("Deleted records", extra={"collection": collection, "count": cursor.rowcount})
        return cursor.rowcount
    except Exception as e:
        await _rollback(conn)
        _raise_db_error(e, operation="delete_records", collection=collection)
        raise


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        order_by = _parse_sort(sort)
        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        columns = [description[0] for description in cursor.description]
        records = [_convert_record(dict(zip(columns, row, strict=True))) for row in rows]

        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except Exception as e:
        _raise_db_error(e, operation="list_records", collection=collection)
        raise


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, per_page=1)
    return records[0] if records else None


async def list_all_records(
    *,
    collection: str,
    filter_query: str = "",
    sort: str = "",
    batch_size: int | None = None,
) -> list[dict[str, Any]]:
    """Return every record matching the filter, fetched one page at a time."""
    batch_size = batch_size or constants.LIST_BATCH_SIZE
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await list_records(
            collection=collection,
            page=page,
            per_page=batch_size,
            filter_query=filter_query,
            sort=sort,
        )
        records.extend(batch)
        if len(batch) < batch_size:
            return records
        page += 1
