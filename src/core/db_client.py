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
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import settings


logger = logging.getLogger(__name__)


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def to_db_timestamp(value: datetime) -> str:
    """Serialize a datetime as a fixed-width UTC ISO string so text comparison orders correctly."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _serialize_value(value: Any) -> Any:
    """Convert a Python value into something SQLite can bind."""
    if isinstance(value, datetime):
        return to_db_timestamp(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        escaped = value.replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
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


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    null_match = re.match(r"^(\w+)\s*(=|!=)\s*null$", comparison)
    if null_match:
        field, op = null_match.group(1), null_match.group(2)
        return (f"{field} IS NULL" if op == "=" else f"{field} IS NOT NULL"), None

    match = re.match(
        r"""(\w+)\s*(=|!=|>|<|>=|<=|~)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)

    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", value
    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]  # Remove parentheses
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        if "?" in cond:
            or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list.

    Supports ``field op "value"`` comparisons joined by ``&&``, parenthesized
    ``||`` groups, and ``field = null`` / ``field != null``.
    """
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params = []

    for raw_part in parts:
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            if "?" in cond:
                params.append(value)

    return " AND ".join(conditions), params


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_transaction_locks: dict[tuple[int, int, str], asyncio.Lock] = {}
_in_transaction: ContextVar[bool] = ContextVar("_in_transaction", default=False)


def _cache_key(db_path: str | None) -> tuple[int, int, str]:
    return (threading.get_ident(), id(asyncio.get_running_loop()), str(get_db_path(db_path)))


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path.

    Connections run in autocommit mode; multi-statement writes go through
    :func:`transaction`.
    """
    cache_key = _cache_key(db_path)

    cached_conn = _db_connections.get(cache_key)
    if cached_conn is not None:
        return cached_conn

    path = get_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(str(path), isolation_level=None)
    await conn.execute("PRAGMA foreign_keys = ON")
    await conn.execute("PRAGMA journal_mode = WAL")

    # Another coroutine may have connected while we awaited
    if cache_key in _db_connections:
        await conn.close()
        return _db_connections[cache_key]

    _db_connections[cache_key] = conn
    _transaction_locks[cache_key] = asyncio.Lock()

    logger.info(
        "Created new SQLite connection",
        extra={"db_path": str(path), "thread_id": cache_key[0], "loop_id": cache_key[1]},
    )
    return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    cache_key = _cache_key(db_path)
    conn = _db_connections.pop(cache_key, None)
    _transaction_locks.pop(cache_key, None)
    if conn is None:
        return

    try:
        await conn.close()
        logger.info("Closed SQLite connection", extra={"db_path": cache_key[2]})
    except Exception as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": cache_key[2]})


@asynccontextmanager
async def transaction(*, db_path: str | None = None) -> AsyncIterator[aiosqlite.Connection]:
    """Run the enclosed writes as one SQLite transaction.

    Every db_client call made inside the block joins the transaction. The
    transaction rolls back if the block raises. A nested block joins the
    outer transaction.
    """
    conn = await get_connection(db_path=db_path)
    if _in_transaction.get():
        yield conn
        return

    lock = _transaction_locks[_cache_key(db_path)]

    async with lock:
        await conn.execute("BEGIN IMMEDIATE")
        token = _in_transaction.set(True)
        try:
            yield conn
        except BaseException:
            await conn.execute("ROLLBACK")
            raise
        else:
            await conn.execute("COMMIT")
        finally:
            _in_transaction.reset(token)


@asynccontextmanager
async def _write_guard() -> AsyncIterator[None]:
    """Keep standalone writes out of another coroutine's open transaction."""
    if _in_transaction.get():
        yield
        return

    await get_connection()
    async with _transaction_locks[_cache_key(None)]:
        yield


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from src.core import schema

    await schema.init_db(db_path=db_path)


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        now = to_db_timestamp(datetime.now(UTC))
        payload = {"created": now, "updated": now, **data}

        columns = list(payload.keys())
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_serialize_value(payload[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        async with _write_guard():
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
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise KeyError(msg)

        columns = [description[0] for description in cursor.description]
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
    updated = await update_record_where(collection=collection, record_id=record_id, data=data)
    if updated is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise KeyError(msg)
    return updated


async def update_record_where(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any],
    filter_query: str = "",
) -> dict[str, Any] | None:
    """Update a record only if it still matches ``filter_query``.

    The id and the filter are checked in the same UPDATE statement, so the
    write is atomic with respect to other writers.

    Returns:
        The updated record, or None if no row matched.
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        payload = {**data, "updated": to_db_timestamp(datetime.now(UTC))}
        set_clause = ", ".join(f"{key} = ?" for key in payload)
        values = [_serialize_value(val) for val in payload.values()]
        values.append(int(record_id))

        where_clause = "id = ?"
        if filter_query:
            extra_clause, extra_params = parse_filter(filter_query)
            where_clause = f"{where_clause} AND {extra_clause}"
            values.extend(extra_params)

        query = f"UPDATE {collection} SET {set_clause} WHERE {where_clause}"  # noqa: S608 - collection is validated
        async with _write_guard():
            cursor = await conn.execute(query, values)

        if cursor.rowcount == 0:
            logger.info(
                "Conditional update matched no rows",
                extra={"collection": collection, "record_id": record_id, "filter_query": filter_query},
            )
            return None

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return await get_record(collection=collection, record_id=record_id)
    except KeyError:
        raise
    except Exception as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise RuntimeError(msg) from e


async def update_records_where(*, collection: str, data: dict[str, Any], filter_query: str) -> int:
    """Update every record matching ``filter_query`` and return the number of rows changed."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)
    if not filter_query:
        msg = "Refusing to update every record without a filter"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        payload = {**data, "updated": to_db_timestamp(datetime.now(UTC))}
        set_clause = ", ".join(f"{key} = ?" for key in payload)
        where_clause, params = parse_filter(filter_query)
        values = [_serialize_value(val) for val in payload.values()] + params

        query = f"UPDATE {collection} SET {set_clause} WHERE {where_clause}"  # noqa: S608 - collection is validated
        async with _write_guard():
            cursor = await conn.execute(query, values)

        logger.info("Updated records", extra={"collection": collection, "count": cursor.rowcount})
        return cursor.rowcount
    except Exception as e:
        logger.error("update_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to update records in {collection}: {e}"
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
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        # Only allow: [+-]column_name or column_name [ASC|DESC]
        safe_sort = "id ASC"
        if sort:
            stripped = sort.strip()
            prefix_match = re.match(r"^([+-])([A-Za-z_][A-Za-z0-9_]*)$", stripped)
            if prefix_match:
                direction = "DESC" if prefix_match.group(1) == "-" else "ASC"
                safe_sort = f"{prefix_match.group(2)} {direction}, id ASC"
            elif re.match(r"^[A-Za-z_][A-Za-z0-9_]*\s*(ASC|DESC)?$", stripped, re.IGNORECASE):
                safe_sort = f"{stripped}, id ASC"
            else:
                logger.warning("Invalid sort parameter, using default", extra={"sort": sort})

        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {safe_sort} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

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


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, per_page=1)
    return records[0] if records else None


async def list_all_records(
    *,
    collection: str,
    filter_query: str = "",
    sort: str = "",
    per_page: int = 500,
) -> list[dict[str, Any]]:
    """List every record matching the filter, fetching ``per_page`` rows at a time.

    Pages are read until one comes back short, so the result is never
    truncated at a single page.
    """
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await list_records(
            collection=collection,
            page=page,
            per_page=per_page,
            filter_query=filter_query,
            sort=sort,
        )
        records.extend(batch)
        if len(batch) < per_page:
            return records
        page += 1
