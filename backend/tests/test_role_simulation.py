"""Tests for the client-side role simulation store."""

import pytest

from punt.auth.permissions import MEMBERS_ADMIN, TICKETS_CREATE, TICKETS_MANAGE_OWN
from punt.client.role_simulation import (
    NavigationDecision,
    RoleSimulationStore,
    RoleSummary,
    SimulationPreferences,
    displayed_permissions,
    project_in_scope,
    simulatable_roles,
)

OWNER_ROLE = RoleSummary(id="r-owner", name="Owner", color="#f59e0b", position=0, is_default=True)
ADMIN_ROLE = RoleSummary(id="r-admin", name="Admin", color="#3b82f6", position=1, is_default=True)
MEMBER_ROLE = RoleSummary(id="r-member", name="Member", color="#6b7280", position=2, is_default=True)

PROJECT_KEYS = {"p1": "PUNT", "p2": "OPS"}
REAL = {MEMBERS_ADMIN, TICKETS_CREATE, TICKETS_MANAGE_OWN}


@pytest.fixture
def store() -> RoleSimulationStore:
    return RoleSimulationStore()


@pytest.mark.unit
class TestSimulationState:
    def test_start_and_stop(self, store):
        store.start_simulation("p1", MEMBER_ROLE, [TICKETS_CREATE])
        assert store.is_simulating("p1")
        assert not store.is_simulating("p2")

        store.stop_simulation("p1")
        assert not store.is_simulating("p1")

    def test_start_overwrites_and_filters_unknown(self, store):
        store.start_simulation("p1", ADMIN_ROLE, [TICKETS_CREATE])
        store.start_simulation("p1", MEMBER_ROLE, [TICKETS_MANAGE_OWN, "made.up"])

        simulation = store.get_simulation("p1")
        assert simulation.role == MEMBER_ROLE
        assert simulation.permissions == {TICKETS_MANAGE_OWN}

    def test_stop_all(self, store):
        store.start_simulation("p1", MEMBER_ROLE, [])
        store.start_simulation("p2", MEMBER_ROLE, [])
        store.stop_all_simulations()
        assert store.simulated_roles == {}

    def test_displayed_permissions_swap_only_the_simulated_project(self, store):
        store.start_simulation("p1", MEMBER_ROLE, [TICKETS_CREATE])
        assert displayed_permissions(store, "p1", REAL) == {TICKETS_CREATE}
        assert displayed_permissions(store, "p2", REAL) == REAL

    def test_escape_ignored_while_overlay_open(self, store):
        store.start_simulation("p1", MEMBER_ROLE, [])
        assert not store.handle_escape("p1", overlay_open=True)
        assert store.is_simulating("p1")
        assert store.handle_escape("p1")
        assert not store.is_simulating("p1")


@pytest.mark.unit
class TestSimulatableRoles:
    def test_own_rank_and_below(self):
        roles = [OWNER_ROLE, ADMIN_ROLE, MEMBER_ROLE]
        assert simulatable_roles(roles, real_position=1) == [ADMIN_ROLE, MEMBER_ROLE]

    def test_system_admin_sees_all(self):
        roles = [OWNER_ROLE, ADMIN_ROLE, MEMBER_ROLE]
        assert simulatable_roles(roles, real_position=-1, is_system_admin=True) == roles


@pytest.mark.unit
class TestNavigationInterception:
    def test_scope_matching(self):
        assert project_in_scope("/projects/PUNT", "PUNT")
        assert project_in_scope("/projects/PUNT/board", "PUNT")
        assert not project_in_scope("/projects/PUNTER/board", "PUNT")
        assert not project_in_scope("/", "PUNT")

    def test_in_scope_navigation_proceeds(self, store):
        store.start_simulation("p1", MEMBER_ROLE, [])
        decision = store.request_navigation("/projects/PUNT/backlog", PROJECT_KEYS)
        assert decision is NavigationDecision.PROCEED
        assert store.pending_navigation is None

    def test_leaving_asks_for_confirmation(self, store):
        store.start_simulation("p1", MEMBER_ROLE, [])
        decision = store.request_navigation("/projects/OPS/board", PROJECT_KEYS)
        assert decision is NavigationDecision.CONFIRM
        assert store.pending_navigation == "/projects/OPS/board"
        assert store.is_simulating("p1")

    def test_cancel_keeps_simulation(self, store):
        store.start_simulation("p1", MEMBER_ROLE, [])
        store.request_navigation("/", PROJECT_KEYS)
        store.cancel_navigation()
        assert store.pending_navigation is None
        assert store.is_simulating("p1")

    def test_confirm_stops_and_can_disable_warning(self, store):
        store.start_simulation("p1", MEMBER_ROLE, [])
        store.request_navigation("/", PROJECT_KEYS)

        url = store.confirm_navigation(current_project_id="p1", dont_ask_again=True)
        assert url == "/"
        assert not store.is_simulating("p1")
        assert store.preferences.warn_on_simulation_leave is False

        store.start_simulation("p1", MEMBER_ROLE, [])
        assert store.request_navigation("/", PROJECT_KEYS) is NavigationDecision.STOPPED
        assert not store.is_simulating("p1")

    def test_sync_with_path_stops_out_of_scope(self, store):
        store.start_simulation("p1", MEMBER_ROLE, [])
        assert not store.sync_with_path("/projects/PUNT/board", PROJECT_KEYS)
        assert store.sync_with_path("/projects/OPS", PROJECT_KEYS)
        assert store.simulated_roles == {}

    def test_sync_with_path_waits_for_pending_dialog(self, store):
        store.start_simulation("p1", MEMBER_ROLE, [])
        store.request_navigation("/", PROJECT_KEYS)
        assert not store.sync_with_path("/", PROJECT_KEYS)
        assert store.is_simulating("p1")


@pytest.mark.unit
class TestSimulationPreferences:
    def test_defaults_when_file_missing(self, tmp_path):
        prefs = SimulationPreferences.load(tmp_path / "prefs.json")
        assert prefs.warn_on_simulation_leave is True

    def test_persisted_preference_survives_reload(self, tmp_path):
        path = tmp_path / "nested" / "prefs.json"
        SimulationPreferences(warn_on_simulation_leave=False).save(path)
        assert SimulationPreferences.load(path).warn_on_simulation_leave is False
