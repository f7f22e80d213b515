from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from dependencies import get_db, get_current_user, CurrentUser
from schemas import TaskCreate, TaskUpdate, CommentCreate, envelope
from services import task_service
from services.task_service import TaskFilters
from task_models import TaskStatus, TaskPriority

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("/stats")
def task_stats(project_id: Optional[str] = Query(None, alias="projectId"), db: Session = Depends(get_db),
               current_user: CurrentUser = Depends(get_current_user)):
    return envelope(task_service.task_stats(db, current_user.id, project_id))


@router.get("")
def list_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = None,
    assignee_id: Optional[str] = Query(None, alias="assigneeId"),
    project_id: Optional[str] = Query(None, alias="projectId"),
    search: Optional[str] = Query(None, max_length=100),
    due_date: Optional[Literal["overdue", "today", "this_week", "this_month"]] = Query(None, alias="dueDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: Literal["createdAt", "dueDate", "priority", "title"] = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Tasks visible to the caller, filtered and paginated.

    Every filter narrows the visible set; none of them can widen it to tasks
    in projects the caller has no part in.
    """
    filters = TaskFilters(
        status=status_filter, priority=priority, assignee_id=assignee_id, project_id=project_id,
        search=search, due_date=due_date, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order,
    )
    tasks, meta = task_service.list_tasks(db, current_user.id, filters)
    return envelope({"items": [task_service.task_to_out(t) for t in tasks], "pagination": meta.to_dict()})


@router.get("/{task_id}")
def get_task(task_id: str, db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    task = task_service.get_task(db, task_id, current_user.id)
    return envelope(task_service.task_to_detail(task))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(body: TaskCreate, db: Session = Depends(get_db),
                current_user: CurrentUser = Depends(get_current_user)):
    task = task_service.create_task(db, current_user.id, body.model_dump())
    return envelope(task_service.task_to_out(task), "Task created successfully")


@router.put("/{task_id}")
def update_task(task_id: str, body: TaskUpdate, db: Session = Depends(get_db),
                current_user: CurrentUser = Depends(get_current_user)):
    task = task_service.update_task(db, task_id, current_user.id, body.model_dump(exclude_unset=True))
    return envelope(task_service.task_to_out(task), "Task updated successfully")


@router.delete("/{task_id}")
def delete_task(task_id: str, db: Session = Depends(get_db),
                current_user: CurrentUser = Depends(get_current_user)):
    task_service.delete_task(db, task_id, current_user.id)
    return envelope(message="Task deleted successfully")


@router.post("/{task_id}/comments", status_code=status.HTTP_201_CREATED)
def add_comment(task_id: str, body: CommentCreate, db: Session = Depends(get_db),
                current_user: CurrentUser = Depends(get_current_user)):
    comment = task_service.add_comment(db, task_id, current_user.id, body.content)
    return envelope(task_service.comment_to_out(comment), "Comment added successfully")
