"""SQLite DDL and migration runner for the board file."""

from __future__ import annotations

import sqlite3

SCHEMA_VERSIONS_DDL = """
CREATE TABLE IF NOT EXISTS schema_versions (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

BOARDS_DDL = """
CREATE TABLE IF NOT EXISTS boards (
    board_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    owner_agent_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    is_default INTEGER NOT NULL DEFAULT 0
);
"""

TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id TEXT PRIMARY KEY,
    board_id TEXT NOT NULL REFERENCES boards(board_id),
    created_at TEXT NOT NULL,
    project TEXT NOT NULL DEFAULT '~',
    owner_agent_id TEXT NOT NULL,
    assigned_to_agent_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'todo',
    status_reason TEXT,
    blockers TEXT NOT NULL DEFAULT '[]',
    artifacts TEXT NOT NULL DEFAULT '[]',
    worklog TEXT NOT NULL DEFAULT '[]'
);
"""

BOARD_INDEXES = [
    # At most one default board per owner
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_boards_default_owner "
    "ON boards(owner_agent_id) WHERE is_default = 1;",
]

TASK_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assignee_created_at "
    "ON tasks(assigned_to_agent_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_board ON tasks(board_id);",
]

MIGRATIONS: dict[int, list[str]] = {
    1: [
        BOARDS_DDL,
        *BOARD_INDEXES,
        TASKS_DDL,
        *TASK_INDEXES,
    ],
}


def get_current_version(db: sqlite3.Connection) -> int:
    try:
        row = db.execute("SELECT MAX(version) FROM schema_versions").fetchone()
        return row[0] or 0
    except sqlite3.OperationalError:
        return 0


def run_migrations(db: sqlite3.Connection) -> None:
    """Apply all pending migrations in one write transaction.

    The board file is shared by independent processes, so it stays on the
    rollback journal: every commit lands in the single ``boards.sqlite`` file.
    """
    db.execute("PRAGMA journal_mode=DELETE")
    db.execute("PRAGMA foreign_keys=ON")

    db.execute("BEGIN IMMEDIATE")
    try:
        db.execute(SCHEMA_VERSIONS_DDL)
        current = get_current_version(db)
        for version in sorted(MIGRATIONS.keys()):
            if version <= current:
                continue
            for statement in MIGRATIONS[version]:
                db.execute(statement)
            db.execute("INSERT INTO schema_versions (version) VALUES (?)", (version,))
        db.execute("COMMIT")
    except BaseException:
        db.execute("ROLLBACK")
        raise
