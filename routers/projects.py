from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dependencies import get_db, get_current_user, CurrentUser
from schemas import ProjectCreate, ProjectUpdate, MemberAddRequest, envelope
from services import project_service

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
def list_projects(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    projects = project_service.list_projects(db, current_user.id)
    return envelope([project_service.project_to_out(db, p) for p in projects])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(body: ProjectCreate, db: Session = Depends(get_db),
                   current_user: CurrentUser = Depends(get_current_user)):
    project = project_service.create_project(db, current_user.id, body.name, body.description, body.color)
    return envelope(project_service.project_to_out(db, project), "Project created successfully")


@router.get("/{project_id}")
def get_project(project_id: str, db: Session = Depends(get_db),
                current_user: CurrentUser = Depends(get_current_user)):
    project = project_service.get_project(db, project_id, current_user.id)
    return envelope(project_service.project_to_out(db, project))


@router.put("/{project_id}")
def update_project(project_id: str, body: ProjectUpdate, db: Session = Depends(get_db),
                   current_user: CurrentUser = Depends(get_current_user)):
    project = project_service.update_project(db, project_id, current_user.id, **body.model_dump(exclude_unset=True))
    return envelope(project_service.project_to_out(db, project), "Project updated successfully")


@router.delete("/{project_id}")
def delete_project(project_id: str, db: Session = Depends(get_db),
                   current_user: CurrentUser = Depends(get_current_user)):
    project_service.delete_project(db, project_id, current_user.id)
    return envelope(message="Project deleted successfully")


@router.post("/{project_id}/members", status_code=status.HTTP_201_CREATED)
def add_member(project_id: str, body: MemberAddRequest, db: Session = Depends(get_db),
               current_user: CurrentUser = Depends(get_current_user)):
    project = project_service.add_member(db, project_id, current_user.id, body.user_id, body.role)
    return envelope(project_service.project_to_out(db, project), "Member added successfully")


@router.delete("/{project_id}/members/{user_id}")
def remove_member(project_id: str, user_id: str, db: Session = Depends(get_db),
                  current_user: CurrentUser = Depends(get_current_user)):
    project = project_service.remove_member(db, project_id, current_user.id, user_id)
    return envelope(project_service.project_to_out(db, project), "Member removed successfully")
