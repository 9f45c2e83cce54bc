"""Tests for rank-based member management checks."""

import pytest

from punt.auth.permissions import MEMBERS_MANAGE
from punt.auth.presets import ADMIN, MEMBER, OWNER
from punt.auth.resolver import can_assign_role, can_manage_member
from punt.models.project import Project
from punt.models.role import Role
from punt.services.roles import create_default_roles_for_project


@pytest.mark.unit
@pytest.mark.asyncio
class TestCanManageMember:
    async def test_higher_rank_manages_lower(self, db_session, project, owner, admin, member):
        assert await can_manage_member(db_session, owner.id, admin.id, project.id)
        assert await can_manage_member(db_session, admin.id, member.id, project.id)

    async def test_lower_rank_cannot_manage_higher(self, db_session, project, owner, admin):
        assert not await can_manage_member(db_session, admin.id, owner.id, project.id)

    async def test_equal_rank_cannot_manage(
        self, db_session, make_user, make_member, project, roles, admin
    ):
        peer = await make_user("Pat Peer")
        await make_member(peer, project, roles[ADMIN])
        assert not await can_manage_member(db_session, admin.id, peer.id, project.id)

    async def test_never_self(self, db_session, project, owner, system_admin):
        assert not await can_manage_member(db_session, owner.id, owner.id, project.id)
        assert not await can_manage_member(db_session, system_admin.id, system_admin.id, project.id)

    async def test_requires_members_manage(self, db_session, project, roles, admin, member):
        roles[ADMIN].permissions = [p for p in roles[ADMIN].permissions if p != MEMBERS_MANAGE]
        await db_session.flush()
        assert not await can_manage_member(db_session, admin.id, member.id, project.id)

    async def test_override_grants_members_manage(
        self, db_session, make_user, make_member, project, roles, member
    ):
        helper = await make_user("Hal Helper")
        custom = Role(
            project_id=project.id, name="Helper", permissions=[], is_default=False, position=1
        )
        db_session.add(custom)
        await db_session.flush()
        # Ranked between Owner (0) and Member (2) with the manage grant as an override
        await make_member(helper, project, custom, overrides=[MEMBERS_MANAGE])
        assert await can_manage_member(db_session, helper.id, member.id, project.id)

    async def test_system_admin_manages_anyone(self, db_session, project, owner, system_admin):
        assert await can_manage_member(db_session, system_admin.id, owner.id, project.id)

    async def test_missing_target_fails_closed(self, db_session, project, owner, outsider):
        assert not await can_manage_member(db_session, owner.id, outsider.id, project.id)

    async def test_reordering_changes_outcome(self, db_session, project, roles, admin, member):
        assert await can_manage_member(db_session, admin.id, member.id, project.id)

        roles[ADMIN].position, roles[MEMBER].position = 10, 11
        await db_session.flush()
        roles[ADMIN].position, roles[MEMBER].position = 2, 1
        await db_session.flush()

        assert not await can_manage_member(db_session, admin.id, member.id, project.id)


@pytest.mark.unit
@pytest.mark.asyncio
class TestCanAssignRole:
    async def test_only_strictly_lower_roles(self, db_session, project, roles, admin):
        assert await can_assign_role(db_session, admin.id, project.id, roles[MEMBER].id)
        assert not await can_assign_role(db_session, admin.id, project.id, roles[ADMIN].id)
        assert not await can_assign_role(db_session, admin.id, project.id, roles[OWNER].id)

    async def test_member_without_manage_cannot_assign(self, db_session, project, roles, member):
        assert not await can_assign_role(db_session, member.id, project.id, roles[MEMBER].id)

    async def test_role_from_another_project_fails_closed(self, db_session, project, owner):
        other = Project(key="OTHER", name="Other")
        db_session.add(other)
        await db_session.flush()
        other_roles = await create_default_roles_for_project(db_session, other.id)

        assert not await can_assign_role(db_session, owner.id, project.id, other_roles[MEMBER])

    async def test_system_admin_assigns_anything(self, db_session, project, roles, system_admin):
        assert await can_assign_role(db_session, system_admin.id, project.id, roles[OWNER].id)
