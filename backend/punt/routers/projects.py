"""Project routes: creation (with role provisioning) and permission introspection."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from punt.auth.deps import get_current_user, require_project_member
from punt.auth.permissions import ALL_PERMISSIONS, parse_permissions
from punt.auth.presets import OWNER
from punt.auth.resolver import get_effective_permissions
from punt.database import get_db
from punt.middleware.exceptions import (
    InvalidRequestError,
    NotAProjectMemberError,
    ResourceNotFoundError,
)
from punt.models.project import Project
from punt.models.role import ProjectMember
from punt.models.user import User
from punt.schemas.permissions import SYSTEM_ADMIN_ROLE, MyPermissionsResponse, RoleSummary
from punt.schemas.projects import ProjectCreate, ProjectOut
from punt.services.roles import create_default_roles_for_project

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a project, provision its roles, and make the creator its Owner."""
    existing = await db.execute(select(Project.id).where(Project.key == body.key))
    if existing.scalar_one_or_none():
        raise InvalidRequestError(
            f"Project key {body.key} is already in use", error_code="DUPLICATE_PROJECT_KEY"
        )

    project = Project(key=body.key, name=body.name, description=body.description)
    db.add(project)
    await db.flush()

    role_ids = await create_default_roles_for_project(db, project.id)
    db.add(ProjectMember(user_id=user.id, project_id=project.id, role_id=role_ids[OWNER]))
    await db.flush()

    logger.info(f"Project {project.key} created by {user.id}")
    return ProjectOut.model_validate(project)


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(
    project_id: str,
    _user: User = Depends(require_project_member),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Project).where(Project.id == project_id))
    project = result.scalar_one_or_none()
    if not project:
        raise ResourceNotFoundError("Project", project_id)
    return ProjectOut.model_validate(project)


@router.get("/{project_id}/my-permissions", response_model=MyPermissionsResponse)
async def my_permissions(
    project_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's effective permissions in a project, for UI gating."""
    effective = await get_effective_permissions(db, user.id, project_id)

    if effective.membership is None:
        if not effective.is_system_admin:
            raise NotAProjectMemberError()
        return MyPermissionsResponse(
            permissions=list(ALL_PERMISSIONS),
            role=SYSTEM_ADMIN_ROLE,
            overrides=[],
            is_system_admin=True,
        )

    membership = effective.membership
    # Catalog order keeps the response stable
    return MyPermissionsResponse(
        permissions=[p for p in ALL_PERMISSIONS if p in effective.permissions],
        role=RoleSummary.model_validate(membership.role),
        overrides=parse_permissions(membership.overrides),
        is_system_admin=False,
    )
