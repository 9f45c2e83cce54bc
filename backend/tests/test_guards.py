"""Tests for request-time authorization guards."""

import pytest

from punt.auth.guards import (
    require_any_permission,
    require_attachment_permission,
    require_comment_permission,
    require_membership,
    require_permission,
    require_resource_permission,
    require_ticket_permission,
)
from punt.auth.permissions import (
    LABELS_MANAGE,
    MEMBERS_ADMIN,
    PROJECT_DELETE,
    TICKETS_CREATE,
    TICKETS_MANAGE_ANY,
    TICKETS_MANAGE_OWN,
)
from punt.auth.presets import MEMBER
from punt.middleware.exceptions import (
    ForbiddenError,
    MissingPermissionError,
    NotAProjectMemberError,
    ResourcePermissionDeniedError,
)


@pytest.mark.unit
@pytest.mark.asyncio
class TestMembershipAndPermissionGuards:
    async def test_membership_guard_rejects_outsider(self, db_session, project, outsider):
        with pytest.raises(NotAProjectMemberError) as exc_info:
            await require_membership(db_session, outsider.id, project.id)
        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Forbidden: Not a project member"

    async def test_membership_guard_accepts_system_admin(self, db_session, project, system_admin):
        effective = await require_membership(db_session, system_admin.id, project.id)
        assert effective.is_system_admin

    async def test_missing_permission_names_the_permission(self, db_session, project, member):
        with pytest.raises(MissingPermissionError) as exc_info:
            await require_permission(db_session, member.id, project.id, PROJECT_DELETE)
        assert exc_info.value.message == f"Forbidden: Missing permission {PROJECT_DELETE}"
        assert exc_info.value.error_code == "MISSING_PERMISSION"
        assert exc_info.value.permissions == [PROJECT_DELETE]
        assert isinstance(exc_info.value, ForbiddenError)

    async def test_permission_guard_returns_effective_set(self, db_session, project, member):
        effective = await require_permission(db_session, member.id, project.id, TICKETS_CREATE)
        assert TICKETS_CREATE in effective.permissions

    async def test_any_permission(self, db_session, project, member):
        await require_any_permission(
            db_session, member.id, project.id, [MEMBERS_ADMIN, TICKETS_CREATE]
        )
        with pytest.raises(MissingPermissionError) as exc_info:
            await require_any_permission(
                db_session, member.id, project.id, [MEMBERS_ADMIN, LABELS_MANAGE]
            )
        assert exc_info.value.message == "Forbidden: Missing required permissions"

    async def test_any_permission_with_empty_list_fails(self, db_session, project, owner):
        with pytest.raises(MissingPermissionError):
            await require_any_permission(db_session, owner.id, project.id, [])


@pytest.mark.unit
@pytest.mark.asyncio
class TestResourceGuards:
    async def test_owner_of_resource_with_own_permission(self, db_session, project, member):
        await require_resource_permission(
            db_session, member.id, project.id, member.id, TICKETS_MANAGE_OWN, TICKETS_MANAGE_ANY
        )

    async def test_someone_elses_resource_needs_any(self, db_session, project, member, admin):
        with pytest.raises(ResourcePermissionDeniedError):
            await require_resource_permission(
                db_session, member.id, project.id, admin.id, TICKETS_MANAGE_OWN, TICKETS_MANAGE_ANY
            )
        await require_resource_permission(
            db_session, admin.id, project.id, member.id, TICKETS_MANAGE_OWN, TICKETS_MANAGE_ANY
        )

    async def test_orphaned_resource_belongs_to_nobody(self, db_session, project, member):
        with pytest.raises(ResourcePermissionDeniedError):
            await require_resource_permission(
                db_session, member.id, project.id, None, TICKETS_MANAGE_OWN, TICKETS_MANAGE_ANY
            )

    async def test_system_admin_bypasses_ownership(self, db_session, project, member, system_admin):
        effective = await require_resource_permission(
            db_session, system_admin.id, project.id, member.id, TICKETS_MANAGE_OWN, TICKETS_MANAGE_ANY
        )
        assert effective.is_system_admin

    async def test_ticket_guard_message_names_the_action(
        self, db_session, project, roles, member, admin
    ):
        roles[MEMBER].permissions = [TICKETS_CREATE]
        await db_session.flush()

        # Creator without manage_own is denied even on their own ticket
        with pytest.raises(ResourcePermissionDeniedError) as exc_info:
            await require_ticket_permission(db_session, member.id, project.id, member.id, "delete")
        assert exc_info.value.message == "Forbidden: Missing permission to delete this ticket"
        assert exc_info.value.error_code == "RESOURCE_PERMISSION_DENIED"

        await require_ticket_permission(db_session, admin.id, project.id, member.id, "edit")

    async def test_comment_author_needs_no_permission(self, db_session, project, outsider):
        assert (
            await require_comment_permission(db_session, outsider.id, project.id, outsider.id, "edit")
            is None
        )

    async def test_comment_moderation(self, db_session, project, member, admin):
        with pytest.raises(ResourcePermissionDeniedError) as exc_info:
            await require_comment_permission(db_session, member.id, project.id, admin.id, "delete")
        assert exc_info.value.message == "Forbidden: Missing permission to delete this comment"

        effective = await require_comment_permission(
            db_session, admin.id, project.id, member.id, "delete"
        )
        assert effective is not None

    async def test_attachment_uploader_needs_no_permission(self, db_session, project, outsider):
        assert (
            await require_attachment_permission(
                db_session, outsider.id, project.id, outsider.id, "delete"
            )
            is None
        )

    async def test_attachment_moderation(self, db_session, project, member, admin):
        with pytest.raises(ResourcePermissionDeniedError):
            await require_attachment_permission(db_session, member.id, project.id, admin.id)
        await require_attachment_permission(db_session, admin.id, project.id, member.id)

    async def test_override_lets_member_edit_others_tickets(
        self, db_session, make_user, make_member, project, roles, admin
    ):
        user = await make_user("Tess Triage")
        await make_member(user, project, roles[MEMBER], overrides=[TICKETS_MANAGE_ANY])

        effective = await require_ticket_permission(
            db_session, user.id, project.id, admin.id, "edit"
        )
        assert TICKETS_MANAGE_ANY in effective.permissions
