"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import settings


logger = logging.getLogger(__name__)

_ConnectionKey = tuple[int, int, str]


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding inside a double-quoted filter string."""
    return json.dumps(str(value))[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    fk_fields = {
        "id",
        "owner_id",
        "list_id",
        "user_id",
        "inviter_id",
        "created_by",
        "added_by",
        "updated_by",
    }

    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key in fk_fields or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _encode_value(val: Any) -> Any:
    if isinstance(val, Enum):
        return val.value
    if isinstance(val, datetime):
        return val.isoformat()
    if isinstance(val, dict | list):
        return json.dumps(val)
    return val


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _like_pattern(value: str) -> str:
    """Wrap a value for a substring LIKE match, escaping its wildcards."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _parse_bare_value(value: str) -> int | float | bool:
    """Convert an unquoted filter literal (number or boolean) for SQLite."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    if value.isdigit():
        return int(value)
    return float(value)


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


_COMPARISON_PATTERN = re.compile(r"""^(\w+)\s*(!=|>=|<=|=|>|<|~)\s*"((?:[^"\\]|\\.)*)"$""")
_BARE_COMPARISON_PATTERN = re.compile(r"^(\w+)\s*(!=|>=|<=|=|>|<)\s*(true|false|\d+(?:\.\d+)?)$", re.IGNORECASE)


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter.

    Values are double-quoted and escaped with ``sanitize_param``; quoted values
    are always bound as text. Booleans and numbers may also appear bare
    (``is_bought = false``) and are bound as such.
    """
    comparison = comparison.strip()
    match = _COMPARISON_PATTERN.match(comparison)
    if match:
        field = match.group(1)
        sql_op = _get_sql_operator(match.group(2))
        value: str | int | float = json.loads(f'"{match.group(3)}"')
        if sql_op == "LIKE":
            return f"{field} LIKE ? ESCAPE '\\'", _like_pattern(value)
        return f"{field} {sql_op} ?", value

    match = _BARE_COMPARISON_PATTERN.match(comparison)
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    sql_op = _get_sql_operator(match.group(2))
    return f"{field} {sql_op} ?", _parse_bare_value(match.group(3))


def _split_top_level(expression: str, separator: str) -> list[str]:
    """Split on a separator that sits outside quoted strings and parentheses."""
    parts = []
    current = ""
    paren_depth = 0
    in_quote = False
    escaped = False

    i = 0
    while i < len(expression):
        char = expression[i]
        if in_quote:
            current += char
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_quote = False
            i += 1
            continue

        if char == '"':
            in_quote = True
        elif char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        if paren_depth == 0 and expression.startswith(separator, i):
            parts.append(current.strip())
            current = ""
            i += len(separator)
            continue

        current += char
        i += 1

    if current.strip():
        parts.append(current.strip())

    return parts


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_conditions = []
    or_params = []

    for part in _split_top_level(inner, "||"):
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list.

    Supports ``field = "value"`` comparisons joined by ``&&`` and one level of
    parenthesized ``||`` groups, e.g. ``owner_id = "3" && (name = "a" || name = "b")``.
    """
    if not filter_query:
        return "", []

    conditions = []
    params = []

    for part in _split_top_level(filter_query, "&&"):
        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


_db_connections: dict[_ConnectionKey, aiosqlite.Connection] = {}
_db_locks: dict[_ConnectionKey, asyncio.Lock] = {}
_db_lock = asyncio.Lock()

# Set while the current task holds a connection inside an atomic() block
_active_transaction: ContextVar[_ConnectionKey | None] = ContextVar("_active_transaction", default=None)


def _connection_key(db_path: str | None = None) -> _ConnectionKey:
    loop = asyncio.get_running_loop()
    return (threading.get_ident(), id(loop), str(get_db_path(db_path)))


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    cache_key = _connection_key(db_path)
    thread_id, loop_id, path_str = cache_key

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path = Path(path_str)
        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(path_str)
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")
        await conn.execute("PRAGMA busy_timeout = 5000")

        _db_connections[cache_key] = conn
        _db_locks[cache_key] = asyncio.Lock()

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": path_str, "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    cache_key = _connection_key(db_path)
    thread_id, loop_id, path_str = cache_key

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            if cache_key in _db_connections:
                conn = _db_connections.pop(cache_key)
                _db_locks.pop(cache_key, None)
                await conn.close()
                logger.info(
                    "Closed SQLite connection",
                    extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": path_str},
                )
    except (aiosqlite.Error, RuntimeError) as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


@asynccontextmanager
async def _use_connection() -> AsyncIterator[aiosqlite.Connection]:
    """Yield the shared connection, serialized against atomic() blocks.

    Inside an atomic() block the caller already holds the lock and the
    surrounding transaction decides when to commit.
    """
    conn = await get_connection()
    cache_key = _connection_key()
    if _active_transaction.get() == cache_key:
        yield conn
        return

    async with _db_locks[cache_key]:
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                await conn.rollback()
            raise
        if conn.in_transaction:
            await conn.commit()


@asynccontextmanager
async def atomic() -> AsyncIterator[aiosqlite.Connection]:
    """Run the enclosed CRUD calls as one ``BEGIN IMMEDIATE`` transaction.

    Commits on normal exit, rolls back if the block raises. Nested blocks join
    the outer transaction.

    Usage:
        async with db_client.atomic():
            record = await db_client.get_first_record(...)
            await db_client.update_record(...)
    """
    conn = await get_connection()
    cache_key = _connection_key()

    if _active_transaction.get() == cache_key:
        yield conn
        return

    async with _db_locks[cache_key]:
        token = _active_transaction.set(cache_key)
        try:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()
        finally:
            _active_transaction.reset(token)


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from src.core import schema  # noqa: PLC0415 - schema imports this module

    await schema.init_db(db_path=db_path)


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    try:
        _validate_collection_name(collection)
        async with _use_connection() as conn:
            columns = list(data.keys())
            columns_str = ", ".join(columns)
            placeholders_str = ", ".join("?" for _ in columns)
            values = [_encode_value(data[key]) for key in columns]

            query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, values)
            record_id = cursor.lastrowid

        result = await get_record(collection=collection, record_id=str(record_id))

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return result
    except Exception as e:
        if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
            msg = f"Table '{collection}' does not exist. Call init_db() first."
            logger.error("Table not found", extra={"collection": collection})
            raise RuntimeError(msg) from e
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise RuntimeError(msg) from e


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising KeyError if not found."""
    try:
        _validate_collection_name(collection)
        async with _use_connection() as conn:
            query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, (int(record_id),))
            row = await cursor.fetchone()
            columns = [description[0] for description in cursor.description]

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise KeyError(msg)

        record = dict(zip(columns, row, strict=True))

        logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
        return _convert_record_ids(record)
    except KeyError:
        raise
    except Exception as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise RuntimeError(msg) from e


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        payload = {"updated": _now_iso(), **data}
        set_clause = ", ".join(f"{key} = ?" for key in payload)
        values = [_encode_value(val) for val in payload.values()]
        values.append(int(record_id))

        async with _use_connection() as conn:
            query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, values)
            rowcount = cursor.rowcount

        if rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise KeyError(msg)

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return await get_record(collection=collection, record_id=record_id)
    except KeyError:
        raise
    except Exception as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise RuntimeError(msg) from e


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising KeyError if not found."""
    try:
        _validate_collection_name(collection)
        async with _use_connection() as conn:
            query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, (int(record_id),))
            rowcount = cursor.rowcount

        if rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise KeyError(msg)

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    except KeyError:
        raise
    except Exception as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to delete record from {collection}: {e}"
        raise RuntimeError(msg) from e


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

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        # Only allow: column_name [ASC|DESC]
        safe_sort = "id ASC"
        if sort:
            sort_pattern = re.match(r"^[A-Za-z_][A-Za-z0-9_]*\s*(ASC|DESC)?$", sort.strip(), re.IGNORECASE)
            if sort_pattern:
                safe_sort = sort.strip()
            else:
                logger.warning("Invalid sort parameter, using default", extra={"sort": sort})

        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {safe_sort} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        async with _use_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            columns = [description[0] for description in cursor.description]

        records = [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]

        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except Exception as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise RuntimeError(msg) from e


async def get_first_record(*, collection: str, filter_query: str, sort: str = "") -> dict[str, Any] | None:
    """Return the first record matching the filter (lowest id unless sorted), or None."""
    records = await list_records(collection=collection, per_page=1, filter_query=filter_query, sort=sort)
    if not records:
        return None
    return records[0]
