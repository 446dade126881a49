"""BoardStore: board and task CRUD over the shared ``boards.sqlite`` file.

Several independent processes may hold a store on the same file. Every
operation first compares the file's fingerprint with the one captured at the
last load (or own commit) and reopens the connection when another writer has
touched the file. Within one process, operations are serialized by a lock and
writes run inside ``BEGIN IMMEDIATE`` so read-validate-mutate is one
transaction.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from pathlib import Path

from cadre.boards.models import (
    DEFAULT_PROJECT,
    REASON_REQUIRED_STATUSES,
    Board,
    BoardDetail,
    Task,
    TaskEntry,
    TaskStatus,
)
from cadre.boards.schema import run_migrations
from cadre.config import Config
from cadre.errors import (
    AuthorizationError,
    BoardWriteError,
    InvalidInputError,
    NotFoundError,
)
from cadre.registry.hierarchy import is_direct_report, is_manager_agent, normalize_agent_id
from cadre.registry.loader import OrgGraph

logger = logging.getLogger(__name__)

MAX_LATEST_TASKS = 100
DEFAULT_LATEST_TASKS = 20
RELOAD_ATTEMPTS = 3
RELOAD_BACKOFF_SECONDS = 0.05
BUSY_TIMEOUT_SECONDS = 5.0

STATUS_ERROR = "Task status must be one of: todo, doing, pending, blocked, done."

_SLUG_CHARS = re.compile(r"[^a-z0-9]+")

# (inode, mtime_ns, size, sqlite file change counter)
Fingerprint = tuple[int, int, int, bytes]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def parse_task_status(value: str | None) -> TaskStatus:
    """Trim and lowercase ``value``; reject anything outside the five statuses."""
    normalized = (value or "").strip().lower()
    try:
        return TaskStatus(normalized)
    except ValueError as e:
        raise InvalidInputError(STATUS_ERROR) from e


def mint_board_id(title: str) -> str:
    slug = _SLUG_CHARS.sub("-", title.lower()).strip("-") or "board"
    return f"{slug}-{uuid.uuid4().hex[:8]}"


def mint_task_id() -> str:
    return f"task-{uuid.uuid4().hex[:8]}"


class BoardStore:
    def __init__(
        self,
        db_path: Path,
        graph: OrgGraph,
        *,
        now: Callable[[], str] = _now_iso,
    ) -> None:
        self._db_path = Path(db_path)
        self._graph = graph
        self._now = now
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        self._fingerprint: Fingerprint | None = None

    @classmethod
    def from_config(cls, config: Config, graph: OrgGraph | None = None) -> BoardStore:
        return cls(config.board_db_path, graph or OrgGraph.from_config(config))

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._fingerprint = None

    # -- Boards -------------------------------------------------------------

    def create_board(self, actor_id: str, title: str) -> Board:
        actor = _require_actor(actor_id)
        if not is_manager_agent(self._graph.get_manifest(actor)):
            raise AuthorizationError("Only managers can create boards.")
        title = _require_text(title, "Board title is required.")
        with self._write() as conn:
            return self._insert_board(conn, actor, title, is_default=False)

    def update_board(self, actor_id: str, board_id: str, *, title: str | None = None) -> Board:
        actor = _require_actor(actor_id)
        with self._write() as conn:
            board = self._require_board(conn, board_id)
            if board.owner != actor:
                raise AuthorizationError("Only board owners can update their own board.")
            if title is None:
                return board
            new_title = _require_text(title, "Board title is required.")
            conn.execute(
                "UPDATE boards SET title = ? WHERE board_id = ?", (new_title, board.board_id)
            )
            return board.model_copy(update={"title": new_title})

    def get_board(self, board_id: str) -> BoardDetail:
        with self._read() as conn:
            board = self._require_board(conn, board_id)
            return BoardDetail(**board.model_dump(), tasks=self._select_tasks(conn, board.board_id))

    def list_boards(self) -> list[Board]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM boards ORDER BY created_at ASC, rowid ASC"
            ).fetchall()
            return [self._row_to_board(row) for row in rows]

    # -- Tasks --------------------------------------------------------------

    def create_task(
        self,
        actor_id: str,
        board_id: str | None,
        *,
        title: str,
        description: str = "",
        assigned_to: str | None = None,
        status: str | None = None,
        reason: str | None = None,
        project: str | None = None,
    ) -> Task:
        """Create a task; without ``board_id`` a manager's default board is used.

        ``assigned_to`` defaults to the actor. Assigning anyone else requires
        the actor to be a manager and the assignee to be a direct report.
        """
        actor = _require_actor(actor_id)
        actor_is_manager = is_manager_agent(self._graph.get_manifest(actor))
        if not board_id and not actor_is_manager:
            raise InvalidInputError("Board id is required for non-manager agents.")

        assignee = normalize_agent_id(assigned_to) or actor
        if assignee != actor:
            if not actor_is_manager:
                raise AuthorizationError("Only managers can assign tasks to other agents.")
            if not self._graph.has_agent(assignee):
                raise NotFoundError("agent", assignee)
            if not is_direct_report(self._graph.get_manifest(assignee), actor):
                raise AuthorizationError(
                    "Managers can only assign tasks to their direct reportees."
                )

        task_status = parse_task_status(status) if status is not None else TaskStatus.TODO
        status_reason = _resolve_reason(task_status, reason, previous=None)
        title = _require_text(title, "Task title is required.")

        with self._write() as conn:
            if board_id:
                board = self._require_board(conn, board_id)
            else:
                board = self._default_board(conn, actor)
            task = Task(
                task_id=mint_task_id(),
                board_id=board.board_id,
                created_at=self._now(),
                project=(project or "").strip() or DEFAULT_PROJECT,
                owner=actor,
                assigned_to=assignee,
                title=title,
                description=(description or "").strip(),
                status=task_status,
                status_reason=status_reason,
            )
            conn.execute(
                """INSERT INTO tasks
                   (task_id, board_id, created_at, project, owner_agent_id,
                    assigned_to_agent_id, title, description, status, status_reason)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    task.task_id,
                    task.board_id,
                    task.created_at,
                    task.project,
                    task.owner,
                    task.assigned_to,
                    task.title,
                    task.description,
                    task.status.value,
                    task.status_reason,
                ),
            )
            logger.debug(f"Created task {task.task_id} on board {task.board_id}")
            return task

    def get_task(self, task_id: str) -> Task:
        with self._read() as conn:
            return self._require_task(conn, task_id)

    def list_tasks(self, board_id: str) -> list[Task]:
        with self._read() as conn:
            board = self._require_board(conn, board_id)
            return self._select_tasks(conn, board.board_id)

    def list_latest_tasks(
        self, *, assignee: str | None = None, limit: int = DEFAULT_LATEST_TASKS
    ) -> list[Task]:
        """Newest tasks first across all boards, never more than 100."""
        limit = max(0, min(limit, MAX_LATEST_TASKS))
        params: list = []
        where_sql = ""
        if assignee:
            where_sql = "WHERE assigned_to_agent_id = ?"
            params.append(normalize_agent_id(assignee))
        params.append(limit)
        with self._read() as conn:
            rows = conn.execute(
                f"""SELECT * FROM tasks {where_sql}
                    ORDER BY created_at DESC, rowid DESC
                    LIMIT ?""",
                params,
            ).fetchall()
            return [self._row_to_task(row) for row in rows]

    def update_task_status(
        self, actor_id: str, task_id: str, status: str, reason: str | None = None
    ) -> Task:
        actor = _require_actor(actor_id)
        with self._write() as conn:
            task = self._require_task(conn, task_id)
            if task.assigned_to != actor:
                raise AuthorizationError("Only the assigned agent can update task status.")
            new_status = parse_task_status(status)
            new_reason = _resolve_reason(new_status, reason, previous=task.status_reason)
            conn.execute(
                "UPDATE tasks SET status = ?, status_reason = ? WHERE task_id = ?",
                (new_status.value, new_reason, task.task_id),
            )
            logger.debug(f"Task {task.task_id}: {task.status} -> {new_status}")
            return task.model_copy(update={"status": new_status, "status_reason": new_reason})

    def add_task_blocker(self, actor_id: str, task_id: str, content: str) -> Task:
        return self._append_entry(actor_id, task_id, "blockers", content)

    def add_task_artifact(self, actor_id: str, task_id: str, content: str) -> Task:
        return self._append_entry(actor_id, task_id, "artifacts", content)

    def add_task_worklog(self, actor_id: str, task_id: str, content: str) -> Task:
        return self._append_entry(actor_id, task_id, "worklog", content)

    # -- Internals ----------------------------------------------------------

    def _append_entry(self, actor_id: str, task_id: str, column: str, content: str) -> Task:
        actor = _require_actor(actor_id)
        content = _require_text(content, "Task entry content is required.")
        with self._write() as conn:
            task = self._require_task(conn, task_id)
            if task.assigned_to != actor:
                raise AuthorizationError(f"Only the assigned agent can update task {column}.")
            entries = [
                *getattr(task, column),
                TaskEntry(content=content, created_by=actor, created_at=self._now()),
            ]
            conn.execute(
                f"UPDATE tasks SET {column} = ? WHERE task_id = ?",
                (json.dumps([e.model_dump() for e in entries]), task.task_id),
            )
            return task.model_copy(update={column: entries})

    def _default_board(self, conn: sqlite3.Connection, owner: str) -> Board:
        row = conn.execute(
            "SELECT * FROM boards WHERE owner_agent_id = ? AND is_default = 1", (owner,)
        ).fetchone()
        if row is not None:
            return self._row_to_board(row)
        name = self._graph.get_manifest(owner).metadata.name or owner
        return self._insert_board(conn, owner, f"{name} Board", is_default=True)

    def _insert_board(
        self, conn: sqlite3.Connection, owner: str, title: str, *, is_default: bool
    ) -> Board:
        board = Board(
            board_id=mint_board_id(title),
            title=title,
            owner=owner,
            created_at=self._now(),
            is_default=is_default,
        )
        conn.execute(
            """INSERT INTO boards (board_id, title, owner_agent_id, created_at, is_default)
               VALUES (?, ?, ?, ?, ?)""",
            (board.board_id, board.title, board.owner, board.created_at, int(is_default)),
        )
        logger.debug(f"Created board {board.board_id} for {owner}")
        return board

    def _require_board(self, conn: sqlite3.Connection, board_id: str) -> Board:
        row = conn.execute(
            "SELECT * FROM boards WHERE board_id = ?", (board_id.strip(),)
        ).fetchone()
        if row is None:
            raise NotFoundError("board", board_id)
        return self._row_to_board(row)

    def _require_task(self, conn: sqlite3.Connection, task_id: str) -> Task:
        # Legacy ids carry an upper-case hex suffix
        row = conn.execute(
            "SELECT * FROM tasks WHERE lower(task_id) = lower(?) ORDER BY rowid LIMIT 1",
            (task_id.strip(),),
        ).fetchone()
        if row is None:
            raise NotFoundError("task", task_id)
        return self._row_to_task(row)

    def _select_tasks(self, conn: sqlite3.Connection, board_id: str) -> list[Task]:
        rows = conn.execute(
            "SELECT * FROM tasks WHERE board_id = ? ORDER BY created_at ASC, rowid ASC",
            (board_id,),
        ).fetchall()
        return [self._row_to_task(row) for row in rows]

    @contextlib.contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self._ensure_fresh()
            try:
                yield conn
            except sqlite3.Error as e:
                raise BoardWriteError(f"Failed to read board file {self._db_path}: {e}") from e

    @contextlib.contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self._ensure_fresh()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise BoardWriteError(f"Failed to lock board file {self._db_path}: {e}") from e
            try:
                yield conn
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                _rollback(conn)
                raise BoardWriteError(f"Failed to write board file {self._db_path}: {e}") from e
            except BaseException:
                _rollback(conn)
                raise
            self._fingerprint = self._read_fingerprint()

    def _ensure_fresh(self) -> sqlite3.Connection:
        """Reopen the board file when another writer changed it since our last look.

        Only the reload is retried; the caller's operation runs once.
        """
        last_error: Exception | None = None
        for attempt in range(1, RELOAD_ATTEMPTS + 1):
            try:
                if self._conn is not None and self._read_fingerprint() == self._fingerprint:
                    return self._conn
                return self._reload()
            except (OSError, sqlite3.OperationalError) as e:
                last_error = e
                logger.warning(
                    f"Board file reload attempt {attempt}/{RELOAD_ATTEMPTS} failed: {e}"
                )
                if attempt < RELOAD_ATTEMPTS:
                    time.sleep(RELOAD_BACKOFF_SECONDS * attempt)
        raise BoardWriteError(
            f"Could not load board file {self._db_path}: {last_error}"
        ) from last_error

    def _reload(self) -> sqlite3.Connection:
        if self._conn is not None:
            logger.debug(f"Board file {self._db_path} changed on disk; reloading")
            self._conn.close()
            self._conn = None
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self._db_path),
            timeout=BUSY_TIMEOUT_SECONDS,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        try:
            run_migrations(conn)
        except BaseException:
            conn.close()
            raise
        self._conn = conn
        self._fingerprint = self._read_fingerprint()
        return conn

    def _read_fingerprint(self) -> Fingerprint | None:
        try:
            st = os.stat(self._db_path)
        except FileNotFoundError:
            return None
        with open(self._db_path, "rb") as f:
            header = f.read(100)
        return (st.st_ino, st.st_mtime_ns, st.st_size, header[24:28])

    @staticmethod
    def _row_to_board(row: sqlite3.Row) -> Board:
        return Board(
            board_id=row["board_id"],
            title=row["title"],
            owner=row["owner_agent_id"],
            created_at=row["created_at"],
            is_default=bool(row["is_default"]),
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            task_id=row["task_id"],
            board_id=row["board_id"],
            created_at=row["created_at"],
            project=row["project"] or DEFAULT_PROJECT,
            owner=row["owner_agent_id"],
            assigned_to=row["assigned_to_agent_id"],
            title=row["title"],
            description=row["description"] or "",
            status=TaskStatus(row["status"]),
            status_reason=row["status_reason"],
            blockers=_load_entries(row["blockers"]),
            artifacts=_load_entries(row["artifacts"]),
            worklog=_load_entries(row["worklog"]),
        )


def _resolve_reason(status: TaskStatus, reason: str | None, *, previous: str | None) -> str | None:
    """Entering pending/blocked needs a reason; otherwise keep the previous one unless replaced."""
    reason = (reason or "").strip() or None
    if status in REASON_REQUIRED_STATUSES and reason is None:
        raise InvalidInputError(f'Reason is required when task status is "{status}".')
    return reason if reason is not None else previous


def _require_actor(actor_id: str | None) -> str:
    actor = normalize_agent_id(actor_id)
    if not actor:
        raise InvalidInputError("Actor agent id is required.")
    return actor


def _require_text(value: str | None, message: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(message)
    return text


def _load_entries(raw: str | None) -> list[TaskEntry]:
    if not raw:
        return []
    return [TaskEntry.model_validate(item) for item in json.loads(raw)]


def _rollback(conn: sqlite3.Connection) -> None:
    # The original error is already propagating
    with contextlib.suppress(sqlite3.Error):
        conn.execute("ROLLBACK")
