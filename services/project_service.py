"""Projects and their membership lists."""

import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from models import User
from schemas import ProjectOut, dump
from task_models import Project, ProjectMember, MemberRole, Task

logger = logging.getLogger(__name__)

MANAGER_ROLES = (MemberRole.OWNER, MemberRole.ADMIN)


def member_project_ids(user_id: str, roles=None):
    stmt = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
    if roles:
        stmt = stmt.where(ProjectMember.role.in_(roles))
    return stmt


def accessible_project_ids(user_id: str, roles=None):
    """Projects the user owns or belongs to (optionally with one of `roles`)."""
    return select(Project.id).where(or_(
        Project.owner_id == user_id,
        Project.id.in_(member_project_ids(user_id, roles)),
    ))


def has_access(db: Session, project_id: str, user_id: str) -> bool:
    return db.query(Project.id).filter(
        Project.id == project_id,
        Project.id.in_(accessible_project_ids(user_id)),
    ).first() is not None


def list_projects(db: Session, user_id: str) -> List[Project]:
    return db.query(Project).filter(
        Project.id.in_(accessible_project_ids(user_id))
    ).order_by(Project.created_at.desc()).all()


def get_project(db: Session, project_id: str, user_id: str) -> Project:
    project = db.query(Project).filter(
        Project.id == project_id,
        Project.id.in_(accessible_project_ids(user_id)),
    ).first()
    if not project:
        raise NotFoundError("Project not found or access denied")
    return project


def _managed_project(db: Session, project_id: str, user_id: str) -> Project:
    project = get_project(db, project_id, user_id)
    if project.owner_id == user_id:
        return project
    membership = next((m for m in project.members if m.user_id == user_id), None)
    if not membership or membership.role not in MANAGER_ROLES:
        raise AuthorizationError("Only project owners and admins can manage this project")
    return project


def create_project(db: Session, owner_id: str, name: str, description: Optional[str] = None,
                   color: Optional[str] = None) -> Project:
    project = Project(name=name, description=description, owner_id=owner_id)
    if color:
        project.color = color
    project.members.append(ProjectMember(user_id=owner_id, role=MemberRole.OWNER))
    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info("Project %s created by %s", project.id, owner_id)
    return project


def update_project(db: Session, project_id: str, user_id: str, **fields) -> Project:
    project = _managed_project(db, project_id, user_id)
    for key, value in fields.items():
        if value is not None:
            setattr(project, key, value)
    db.commit()
    db.refresh(project)
    return project


def delete_project(db: Session, project_id: str, user_id: str) -> None:
    project = get_project(db, project_id, user_id)
    if project.owner_id != user_id:
        raise AuthorizationError("Only the project owner can delete a project")
    db.delete(project)
    db.commit()
    logger.info("Project %s deleted by %s", project_id, user_id)


def add_member(db: Session, project_id: str, user_id: str, member_id: str,
               role: MemberRole = MemberRole.MEMBER) -> Project:
    project = _managed_project(db, project_id, user_id)
    if role == MemberRole.OWNER:
        raise ValidationError("A project has exactly one owner")
    member = db.get(User, member_id)
    if not member or not member.is_active:
        raise NotFoundError("User not found")
    if any(m.user_id == member_id for m in project.members):
        raise ConflictError("User is already a member of this project")
    project.members.append(ProjectMember(user_id=member_id, role=role))
    db.commit()
    db.refresh(project)
    return project


def remove_member(db: Session, project_id: str, user_id: str, member_id: str) -> Project:
    project = _managed_project(db, project_id, user_id)
    if member_id == project.owner_id:
        raise ValidationError("The project owner cannot be removed")
    membership = next((m for m in project.members if m.user_id == member_id), None)
    if not membership:
        raise NotFoundError("Member not found")
    project.members.remove(membership)
    db.commit()
    db.refresh(project)
    return project


def project_to_out(db: Session, project: Project) -> dict:
    out = ProjectOut.model_validate(project)
    out.task_count = db.query(Task).filter(Task.project_id == project.id).count()
    return dump(out)
