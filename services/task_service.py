"""
Task queries and mutations. Every read goes through `visible_tasks`, so a
user only ever sees tasks they created, are assigned to, or that live in a
project they own or belong to.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session

from database import LIKE_ESCAPE, like_pattern
from errors import AuthorizationError, NotFoundError, ValidationError
from pagination import paginate
from schemas import TaskOut, TaskDetailOut, CommentOut, dump
from services.project_service import accessible_project_ids, has_access, MANAGER_ROLES
from task_models import Task, TaskStatus, TaskPriority, Tag, Comment, CLOSED_STATUSES

logger = logging.getLogger(__name__)

DUE_BUCKETS = ("overdue", "today", "this_week", "this_month")

_PRIORITY_ORDER = case(
    (Task.priority == TaskPriority.LOW, 0),
    (Task.priority == TaskPriority.MEDIUM, 1),
    (Task.priority == TaskPriority.HIGH, 2),
    (Task.priority == TaskPriority.URGENT, 3),
    else_=1,
)

_SORT_COLUMNS = {
    "createdAt": Task.created_at,
    "dueDate": Task.due_date,
    "priority": _PRIORITY_ORDER,
    "title": Task.title,
}


@dataclass
class TaskFilters:
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[str] = None
    project_id: Optional[str] = None
    search: Optional[str] = None
    due_date: Optional[str] = None
    page: int = 1
    limit: int = 20
    sort_by: str = "createdAt"
    sort_order: str = "desc"


def _visibility(user_id: str):
    return or_(
        Task.creator_id == user_id,
        Task.assignee_id == user_id,
        Task.project_id.in_(accessible_project_ids(user_id)),
    )


def visible_tasks(db: Session, user_id: str):
    return db.query(Task).filter(_visibility(user_id))


def add_months(day: datetime, months: int = 1) -> datetime:
    """Same day `months` later, clamped to the length of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def due_date_range(bucket: str, now: Optional[datetime] = None):
    """
    Returns (start, end) for a bucket anchored at local midnight. `overdue`
    has no start; the other buckets are half-open [start, end).
    """
    now = now or datetime.now()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if bucket == "overdue":
        return None, today
    if bucket == "today":
        return today, today + timedelta(days=1)
    if bucket == "this_week":
        return today, today + timedelta(days=7)
    if bucket == "this_month":
        return today, add_months(today)
    raise ValidationError(f"Unknown due date filter: {bucket}")


def _apply_filters(query, filters: TaskFilters, now: Optional[datetime] = None):
    if filters.status:
        query = query.filter(Task.status == filters.status)
    if filters.priority:
        query = query.filter(Task.priority == filters.priority)
    if filters.assignee_id:
        query = query.filter(Task.assignee_id == filters.assignee_id)
    if filters.project_id:
        query = query.filter(Task.project_id == filters.project_id)
    if filters.search:
        pattern = like_pattern(filters.search)
        query = query.filter(or_(
            func.lower(Task.title).like(pattern, escape=LIKE_ESCAPE),
            func.lower(func.coalesce(Task.description, "")).like(pattern, escape=LIKE_ESCAPE),
        ))
    if filters.due_date:
        start, end = due_date_range(filters.due_date, now)
        if start is None:
            query = query.filter(Task.due_date < end, Task.status.notin_(CLOSED_STATUSES))
        else:
            query = query.filter(Task.due_date >= start, Task.due_date < end)
    return query


def list_tasks(db: Session, user_id: str, filters: TaskFilters, now: Optional[datetime] = None):
    query = _apply_filters(visible_tasks(db, user_id), filters, now)

    column = _SORT_COLUMNS.get(filters.sort_by, Task.created_at)
    ordering = column.asc() if filters.sort_order == "asc" else column.desc()
    query = query.order_by(ordering, Task.id)

    return paginate(query, filters.page, filters.limit)


def get_task(db: Session, task_id: str, user_id: str) -> Task:
    task = visible_tasks(db, user_id).filter(Task.id == task_id).first()
    if not task:
        raise NotFoundError("Task not found or access denied")
    return task


def _member_role(task: Task, user_id: str):
    membership = next((m for m in task.project.members if m.user_id == user_id), None)
    return membership.role if membership else None


def can_update(task: Task, user_id: str) -> bool:
    return (
        task.creator_id == user_id
        or task.assignee_id == user_id
        or task.project.owner_id == user_id
        or _member_role(task, user_id) in MANAGER_ROLES
    )


def can_delete(task: Task, user_id: str) -> bool:
    return (
        task.creator_id == user_id
        or task.project.owner_id == user_id
        or _member_role(task, user_id) in MANAGER_ROLES
    )


def _resolve_tags(db: Session, names: List[str]) -> List[Tag]:
    tags = []
    for name in names:
        tag = db.query(Tag).filter(Tag.name == name).first()
        if not tag:
            tag = Tag(name=name)
            db.add(tag)
        tags.append(tag)
    return tags


def _check_assignee(db: Session, project_id: str, assignee_id: Optional[str]) -> None:
    if assignee_id and not has_access(db, project_id, assignee_id):
        raise ValidationError("Assignee does not have access to this project")


def create_task(db: Session, user_id: str, data: dict) -> Task:
    data = dict(data)
    project_id = data["project_id"]
    if not has_access(db, project_id, user_id):
        raise AuthorizationError("You do not have access to this project")

    _check_assignee(db, project_id, data.get("assignee_id"))

    parent_id = data.get("parent_task_id")
    if parent_id:
        parent = visible_tasks(db, user_id).filter(Task.id == parent_id).first()
        if not parent or parent.project_id != project_id:
            raise ValidationError("Parent task not found or belongs to a different project")

    tag_names = data.pop("tags", None) or []
    if data.get("priority") is None:
        data.pop("priority", None)

    task = Task(creator_id=user_id, **data)
    task.tags = _resolve_tags(db, tag_names)
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("Task %s created in project %s by %s", task.id, project_id, user_id)
    return task


def update_task(db: Session, task_id: str, user_id: str, changes: dict, now: Optional[datetime] = None) -> Task:
    """
    Applies `changes` (only the fields the caller actually sent). Keeps
    completed_at in step with the status.
    """
    task = get_task(db, task_id, user_id)
    if not can_update(task, user_id):
        raise AuthorizationError("You do not have permission to update this task")

    changes = dict(changes)
    if "assignee_id" in changes:
        _check_assignee(db, task.project_id, changes["assignee_id"])

    if "tags" in changes:
        task.tags = _resolve_tags(db, changes.pop("tags") or [])

    new_status = changes.pop("status", None)
    if new_status is not None and new_status != task.status:
        if new_status == TaskStatus.COMPLETED:
            task.completed_at = now or datetime.now()
        elif task.status == TaskStatus.COMPLETED:
            task.completed_at = None
        task.status = new_status

    for key, value in changes.items():
        if value is None and key in ("title", "priority"):
            continue
        setattr(task, key, value)

    db.commit()
    db.refresh(task)
    return task


def delete_task(db: Session, task_id: str, user_id: str) -> None:
    task = get_task(db, task_id, user_id)
    if not can_delete(task, user_id):
        raise AuthorizationError("You do not have permission to delete this task")
    db.delete(task)
    db.commit()
    logger.info("Task %s deleted by %s", task_id, user_id)


def add_comment(db: Session, task_id: str, user_id: str, content: str) -> Comment:
    task = get_task(db, task_id, user_id)
    comment = Comment(content=content, author_id=user_id, task_id=task.id)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment


def task_stats(db: Session, user_id: str, project_id: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now()
    query = visible_tasks(db, user_id)
    if project_id:
        query = query.filter(Task.project_id == project_id)

    def count(*criteria):
        return query.filter(*criteria).order_by(None).count()

    total = count()
    completed = count(Task.status == TaskStatus.COMPLETED)
    stats = {
        "total": total,
        "todo": count(Task.status == TaskStatus.TODO),
        "inProgress": count(Task.status == TaskStatus.IN_PROGRESS),
        "completed": completed,
        "overdue": count(and_(Task.due_date < now, Task.status.notin_(CLOSED_STATUSES))),
        "completionRate": round(completed / total * 100) if total else 0,
    }
    return stats


# --- Serialization ---
def task_to_out(task: Task) -> dict:
    out = TaskOut.model_validate(task)
    out.comment_count = len(task.comments)
    out.subtask_count = len(task.subtasks)
    return dump(out)


def task_to_detail(task: Task) -> dict:
    out = TaskDetailOut.model_validate(task)
    out.comment_count = len(task.comments)
    out.subtask_count = len(task.subtasks)
    return dump(out)


def comment_to_out(comment: Comment) -> dict:
    return dump(CommentOut.model_validate(comment))
