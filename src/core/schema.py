"""SQLite schema management (code-first approach)."""

import logging

from src.core import db_client


logger = logging.getLogger(__name__)


# Creation order matters: later tables reference earlier ones
TABLE_SCHEMAS: dict[str, str] = {
    "employees": """CREATE TABLE IF NOT EXISTS employees (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'employee'
            CHECK (role IN ('admin', 'director', 'manager', 'senior', 'employee')),
        department_id TEXT,
        management_id TEXT,
        division_id TEXT,
        points INTEGER NOT NULL DEFAULT 0,
        grade TEXT NOT NULL DEFAULT 'D' CHECK (grade IN ('D', 'C', 'B', 'A')),
        rating TEXT NOT NULL DEFAULT '0',
        is_active INTEGER NOT NULL DEFAULT 1
    )""",
    "tasks": """CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        status TEXT NOT NULL DEFAULT 'BACKLOG'
            CHECK (status IN ('BACKLOG', 'IN_PROGRESS', 'UNDER_REVIEW', 'DONE')),
        task_type TEXT NOT NULL CHECK (task_type IN ('INDIVIDUAL', 'UNIT', 'DEPARTMENT')),
        mode TEXT NOT NULL DEFAULT 'MONEY' CHECK (mode IN ('MONEY', 'TIME')),
        department_id TEXT NOT NULL,
        management_id TEXT,
        division_id TEXT,
        creator_id INTEGER NOT NULL REFERENCES employees(id),
        creator_name TEXT NOT NULL,
        executor_id INTEGER REFERENCES employees(id),
        executor_name TEXT,
        minimum_grade TEXT NOT NULL DEFAULT 'D' CHECK (minimum_grade IN ('D', 'C', 'B', 'A')),
        deadline TEXT NOT NULL,
        auction_start_at TEXT,
        auction_planned_end_at TEXT,
        auction_end_at TEXT,
        auction_has_bids INTEGER NOT NULL DEFAULT 0,
        auction_winner_id INTEGER REFERENCES employees(id),
        auction_winner_name TEXT,
        base_price TEXT,
        base_time_minutes INTEGER,
        current_price TEXT,
        earned_money TEXT,
        earned_time_minutes INTEGER,
        review_deadline TEXT,
        done_at TEXT,
        assigned_points INTEGER
    )""",
    "auction_bids": """CREATE TABLE IF NOT EXISTS auction_bids (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        task_id INTEGER NOT NULL REFERENCES tasks(id),
        bidder_id INTEGER NOT NULL REFERENCES employees(id),
        bidder_name TEXT NOT NULL,
        bidder_rating TEXT NOT NULL DEFAULT '0',
        bidder_grade TEXT NOT NULL CHECK (bidder_grade IN ('D', 'C', 'B', 'A')),
        bidder_points INTEGER NOT NULL DEFAULT 0,
        value_money TEXT,
        value_time_minutes INTEGER,
        is_active INTEGER NOT NULL DEFAULT 1
    )""",
    "point_transactions": """CREATE TABLE IF NOT EXISTS point_transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        employee_id INTEGER NOT NULL REFERENCES employees(id),
        employee_name TEXT NOT NULL,
        amount INTEGER NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('task_completion', 'overdue_penalty', 'manual_award')),
        task_id INTEGER REFERENCES tasks(id),
        task_title TEXT,
        comment TEXT
    )""",
    "task_comments": """CREATE TABLE IF NOT EXISTS task_comments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        updated TEXT NOT NULL,
        task_id INTEGER NOT NULL REFERENCES tasks(id),
        author_id INTEGER NOT NULL REFERENCES employees(id),
        author_name TEXT NOT NULL,
        content TEXT NOT NULL
    )""",
}

INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks (status)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_executor_id ON tasks (executor_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_department_id ON tasks (department_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_auction_planned_end_at ON tasks (auction_planned_end_at)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_review_deadline ON tasks (review_deadline)",
    "CREATE INDEX IF NOT EXISTS idx_auction_bids_task_id ON auction_bids (task_id)",
    "CREATE INDEX IF NOT EXISTS idx_auction_bids_bidder_id ON auction_bids (bidder_id)",
    "CREATE INDEX IF NOT EXISTS idx_point_transactions_employee_id ON point_transactions (employee_id)",
    "CREATE INDEX IF NOT EXISTS idx_task_comments_task_id ON task_comments (task_id)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes (idempotent)."""
    conn = await db_client.get_connection(db_path=db_path)

    for table_name, ddl in TABLE_SCHEMAS.items():
        await conn.execute(ddl)
        logger.debug("Ensured table exists", extra={"table": table_name})

    for index_sql in INDEXES:
        await conn.execute(index_sql)

    logger.info("SQLite schema initialized", extra={"tables": list(TABLE_SCHEMAS)})
