"""SQLite schema management (code-first approach)."""

import logging

from src.core import db_client


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = [
    "users",
    "collaborations",
    "message_buffers",
    "lists",
    "items",
    "pantry",
    "item_classifications",
    "family_schedule",
]

_TIMESTAMPS = """
    created TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    updated TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"""


def _get_collection_schema(collection_name: str) -> list[str]:
    """Get the DDL statements (table first, then indexes) for a collection."""
    schemas = {
        "users": [
            f"""CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phone_number TEXT NOT NULL,
    display_name TEXT NOT NULL,
    email TEXT,
    linked_account_id TEXT,{_TIMESTAMPS}
)""",
            "CREATE INDEX IF NOT EXISTS idx_users_phone ON users (phone_number)",
        ],
        "collaborations": [
            f"""CREATE TABLE IF NOT EXISTS collaborations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    inviter_id TEXT NOT NULL,
    invitee_phone TEXT,
    invitee_email TEXT,
    invitee_name TEXT,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'revoked')),{_TIMESTAMPS}
)""",
            "CREATE INDEX IF NOT EXISTS idx_collaborations_phone ON collaborations (invitee_phone, status)",
        ],
        "message_buffers": [
            f"""CREATE TABLE IF NOT EXISTS message_buffers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sender_id TEXT NOT NULL UNIQUE,
    messages TEXT NOT NULL DEFAULT '[]',
    last_timestamp REAL NOT NULL,
    profile_name TEXT,{_TIMESTAMPS}
)""",
        ],
        "lists": [
            f"""CREATE TABLE IF NOT EXISTS lists (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    owner_id TEXT NOT NULL,{_TIMESTAMPS}
)""",
            "CREATE INDEX IF NOT EXISTS idx_lists_owner ON lists (owner_id, name)",
        ],
        "items": [
            f"""CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    list_id TEXT NOT NULL,
    name TEXT NOT NULL,
    is_bought INTEGER NOT NULL DEFAULT 0,
    quantity INTEGER,
    added_by TEXT,
    added_at TEXT,
    auto_added INTEGER NOT NULL DEFAULT 0,{_TIMESTAMPS}
)""",
            "CREATE INDEX IF NOT EXISTS idx_items_list ON items (list_id, is_bought)",
        ],
        "pantry": [
            f"""CREATE TABLE IF NOT EXISTS pantry (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('in-stock', 'low', 'finished')),
    owner_id TEXT NOT NULL,
    updated_by TEXT,
    updated_at TEXT,{_TIMESTAMPS}
)""",
            "CREATE INDEX IF NOT EXISTS idx_pantry_owner_item ON pantry (owner_id, item)",
        ],
        "item_classifications": [
            f"""CREATE TABLE IF NOT EXISTS item_classifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    normalized_name TEXT NOT NULL,
    list_id TEXT NOT NULL,
    list_name TEXT NOT NULL,{_TIMESTAMPS},
    UNIQUE (user_id, normalized_name)
)""",
        ],
        "family_schedule": [
            f"""CREATE TABLE IF NOT EXISTS family_schedule (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    date TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'one-time' CHECK (type IN ('one-time', 'recurring')),
    recurrence_rule TEXT,
    created_by TEXT NOT NULL,{_TIMESTAMPS}
)""",
            "CREATE INDEX IF NOT EXISTS idx_family_schedule_date ON family_schedule (date)",
        ],
    }

    if collection_name not in schemas:
        msg = f"Unknown collection: {collection_name}"
        raise ValueError(msg)
    return schemas[collection_name]


async def init_db(*, db_path: str | None = None) -> None:
    """Create every table and index that does not exist yet.

    Args:
        db_path: Optional database path overriding ``settings.sqlite_db_path``
    """
    conn = await db_client.get_connection(db_path=db_path)

    for collection in COLLECTIONS:
        for statement in _get_collection_schema(collection):
            await conn.execute(statement)
        logger.debug("Ensured collection", extra={"collection": collection})

    await conn.commit()
    logger.info("Database schema initialized", extra={"collections": len(COLLECTIONS)})
