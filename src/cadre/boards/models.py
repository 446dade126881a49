"""Pydantic models for boards, tasks, and their append-only entries."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class TaskStatus(StrEnum):
    TODO = "todo"
    DOING = "doing"
    PENDING = "pending"
    BLOCKED = "blocked"
    DONE = "done"


REASON_REQUIRED_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.BLOCKED})

DEFAULT_PROJECT = "~"


class TaskEntry(BaseModel):
    content: str
    created_by: str
    created_at: str


class Board(BaseModel):
    board_id: str
    title: str
    owner: str
    created_at: str
    is_default: bool = False


class Task(BaseModel):
    task_id: str
    board_id: str
    created_at: str
    project: str = DEFAULT_PROJECT
    owner: str
    assigned_to: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    status_reason: str | None = None
    blockers: list[TaskEntry] = Field(default_factory=list)
    artifacts: list[TaskEntry] = Field(default_factory=list)
    worklog: list[TaskEntry] = Field(default_factory=list)


class BoardDetail(Board):
    tasks: list[Task] = Field(default_factory=list)
