"""Task boards persisted in a single shared SQLite file."""

from cadre.boards.models import Board, BoardDetail, Task, TaskEntry, TaskStatus
from cadre.boards.store import BoardStore, parse_task_status

__all__ = [
    "Board",
    "BoardDetail",
    "BoardStore",
    "Task",
    "TaskEntry",
    "TaskStatus",
    "parse_task_status",
]
