"""Tests for the permission catalog, parsing, and role presets."""

import json

import pytest

from punt.auth.permissions import (
    ALL_PERMISSIONS,
    CATEGORY_METADATA,
    MEMBERS_ADMIN,
    PERMISSION_METADATA,
    PROJECT_DELETE,
    TICKETS_CREATE,
    TICKETS_MANAGE_OWN,
    get_permissions_by_category,
    get_sorted_categories_with_permissions,
    is_valid_permission,
    parse_permissions,
    serialize_permissions,
)
from punt.auth.presets import (
    ADMIN,
    MEMBER,
    OWNER,
    get_default_role_configs,
    get_default_role_permissions,
    is_default_role_name,
)
from punt.config import settings


@pytest.mark.unit
class TestCatalog:
    def test_catalog_has_thirteen_unique_permissions(self):
        assert len(ALL_PERMISSIONS) == 13
        assert len(set(ALL_PERMISSIONS)) == 13

    def test_every_permission_has_metadata_in_a_known_category(self):
        assert set(PERMISSION_METADATA) == set(ALL_PERMISSIONS)
        for meta in PERMISSION_METADATA.values():
            assert meta.category in CATEGORY_METADATA

    def test_categories_sorted_by_display_order(self):
        orders = [c.order for c, _ in get_sorted_categories_with_permissions()]
        assert orders == sorted(orders)
        assert len(orders) == len(CATEGORY_METADATA)

    def test_grouping_covers_every_permission_once(self):
        grouped = get_permissions_by_category()
        keys = [m.key for perms in grouped.values() for m in perms]
        assert sorted(keys) == sorted(ALL_PERMISSIONS)

    def test_is_valid_permission(self):
        assert is_valid_permission(TICKETS_CREATE)
        assert not is_valid_permission("tickets.fly")
        assert not is_valid_permission(None)
        assert not is_valid_permission(42)


@pytest.mark.unit
class TestParsePermissions:
    def test_unknown_entries_are_dropped(self):
        raw = json.dumps(["tickets.create", "bogus.perm", "sprints.manage"])
        assert parse_permissions(raw) == ["tickets.create", "sprints.manage"]

    @pytest.mark.parametrize("raw", [None, "", "not json", "{", '{"a": 1}', "42", "null"])
    def test_malformed_input_yields_empty(self, raw):
        assert parse_permissions(raw) == []

    def test_malformed_input_is_logged(self, caplog):
        with caplog.at_level("WARNING", logger="punt.auth.permissions"):
            assert parse_permissions("{not json") == []
            assert parse_permissions(42) == []
        assert "Ignoring unparsable permission list: '{not json'" in caplog.text
        assert "Ignoring permission list of type int" in caplog.text

    def test_structured_list_is_accepted(self):
        assert parse_permissions([TICKETS_CREATE, 7, None]) == [TICKETS_CREATE]

    def test_duplicates_collapse_in_order(self):
        raw = [TICKETS_MANAGE_OWN, TICKETS_CREATE, TICKETS_MANAGE_OWN]
        assert parse_permissions(raw) == [TICKETS_MANAGE_OWN, TICKETS_CREATE]

    def test_oversized_payload_is_rejected(self):
        raw = json.dumps([TICKETS_CREATE] * settings.max_permissions_json_size)
        assert parse_permissions(raw) == []

    def test_deeply_nested_json_does_not_raise(self):
        raw = "[" * 5000 + "]" * 5000
        assert parse_permissions(raw) == []

    def test_serialize_normalizes(self):
        assert serialize_permissions([TICKETS_CREATE, "x", TICKETS_CREATE]) == [TICKETS_CREATE]


@pytest.mark.unit
class TestPresets:
    def test_owner_holds_full_catalog(self):
        assert set(get_default_role_permissions(OWNER)) == set(ALL_PERMISSIONS)

    def test_admin_lacks_delete_and_permission_admin(self):
        admin = set(get_default_role_permissions(ADMIN))
        assert admin == set(ALL_PERMISSIONS) - {PROJECT_DELETE, MEMBERS_ADMIN}

    def test_member_preset(self):
        assert set(get_default_role_permissions(MEMBER)) == {TICKETS_CREATE, TICKETS_MANAGE_OWN}

    def test_unknown_role_name_gets_nothing(self):
        assert get_default_role_permissions("Viewer") == []
        assert not is_default_role_name("Viewer")
        assert is_default_role_name(OWNER)

    def test_default_configs_ranked_owner_first(self):
        configs = get_default_role_configs()
        assert [c.name for c in configs] == [OWNER, ADMIN, MEMBER]
        assert [c.position for c in configs] == [0, 1, 2]
        assert all(c.is_default for c in configs)
