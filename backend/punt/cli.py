"""Management CLI for permissions and roles.

Usage:
    python -m punt.cli list-permissions    # Print the permission catalog
    python -m punt.cli provision-roles     # Create default roles for projects lacking them
"""

import asyncio
import sys

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from punt.auth.permissions import get_sorted_categories_with_permissions
from punt.database import async_session, engine
from punt.models.project import Project
from punt.models.role import Role
from punt.services.roles import create_default_roles_for_project


def list_permissions():
    for category, permissions in get_sorted_categories_with_permissions():
        print(f"{category.label}  ({category.description})")
        for meta in permissions:
            print(f"  {meta.key:<24} {meta.label}")
        print()


async def _provision_roles() -> int:
    try:
        async with async_session() as db:
            return await _provision_missing(db)
    finally:
        await engine.dispose()


async def _provision_missing(db: AsyncSession) -> int:
    provisioned = 0
    has_defaults = select(Role.project_id).where(Role.is_default.is_(True))
    result = await db.execute(
        select(Project.id, Project.key).where(Project.id.not_in(has_defaults))
    )
    projects = result.all()
    if not projects:
        print("All projects already have default roles.")
        return 0

    for project_id, key in projects:
        print(f"  Provisioning {key}...")
        await create_default_roles_for_project(db, project_id)
        await db.commit()
        provisioned += 1
    return provisioned


def provision_roles():
    count = asyncio.run(_provision_roles())
    print(f"\n{count} project(s) provisioned")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "list-permissions":
        list_permissions()
    elif cmd == "provision-roles":
        provision_roles()
    else:
        print("Usage: python -m punt.cli [list-permissions|provision-roles]")
