"""Client-side role simulation ("view as role").

Lets an admin re-render the UI as if they held another role's permission
set in one project. This is display state only: nothing here is consulted by
the server guards, and API calls keep running under the real principal.
Server code must not import this module.

Navigation interception: leaving the simulated project's routes either
queues a confirmation (`pending_navigation`) or stops the simulation
outright, depending on the persisted `warn_on_simulation_leave` preference.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel

from punt.auth.permissions import ALL_PERMISSIONS, is_valid_permission

logger = logging.getLogger(__name__)


# ── State types ─────────────────────────────────────────────

@dataclass(frozen=True)
class RoleSummary:
    id: str
    name: str
    color: str
    position: int
    is_default: bool = False
    description: str | None = None


@dataclass(frozen=True)
class SimulatedRole:
    role: RoleSummary
    permissions: frozenset[str]


class NavigationDecision(enum.Enum):
    PROCEED = "proceed"            # not simulating, or target stays in scope
    CONFIRM = "confirm"            # dialog shown, target queued as pending
    STOPPED = "stopped"            # simulation ended without asking


class SimulationPreferences(BaseModel):
    warn_on_simulation_leave: bool = True

    @classmethod
    def load(cls, path: Path) -> SimulationPreferences:
        """Read preferences from a JSON file; defaults when absent."""
        if not path.exists():
            return cls()
        return cls.model_validate_json(path.read_text(encoding="utf-8"))

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")


# ── Helpers ─────────────────────────────────────────────────

def project_in_scope(path: str, project_key: str) -> bool:
    """Whether an app path belongs to the project's routes."""
    base = f"/projects/{project_key}"
    return path == base or path.startswith(base + "/")


def simulatable_roles(
    roles: Iterable[RoleSummary], real_position: int, is_system_admin: bool = False
) -> list[RoleSummary]:
    """Roles the viewer may preview: their own rank and below, or all for admins."""
    return [r for r in roles if is_system_admin or r.position >= real_position]


# ── Store ───────────────────────────────────────────────────

class RoleSimulationStore:
    def __init__(self, preferences: SimulationPreferences | None = None):
        self.preferences = preferences or SimulationPreferences()
        self.simulated_roles: dict[str, SimulatedRole] = {}
        self.pending_navigation: str | None = None

    def start_simulation(
        self, project_id: str, role: RoleSummary, permissions: Iterable[str]
    ) -> SimulatedRole:
        """Simulate `role` in a project, replacing any current simulation there."""
        simulation = SimulatedRole(
            role=role,
            permissions=frozenset(p for p in permissions if is_valid_permission(p)),
        )
        self.simulated_roles[project_id] = simulation
        logger.debug(f"Simulating role {role.name} in project {project_id}")
        return simulation

    def stop_simulation(self, project_id: str) -> None:
        self.simulated_roles.pop(project_id, None)
        self.pending_navigation = None

    def stop_all_simulations(self) -> None:
        self.simulated_roles.clear()
        self.pending_navigation = None

    def is_simulating(self, project_id: str) -> bool:
        return project_id in self.simulated_roles

    def get_simulation(self, project_id: str) -> SimulatedRole | None:
        return self.simulated_roles.get(project_id)

    def set_pending_navigation(self, url: str | None) -> None:
        self.pending_navigation = url

    # ── Navigation interception ─────────────────────────────

    def _in_scope(self, path: str, project_keys: Mapping[str, str]) -> bool:
        return any(
            project_in_scope(path, project_keys[pid])
            for pid in self.simulated_roles
            if project_keys.get(pid)
        )

    def request_navigation(self, url: str, project_keys: Mapping[str, str]) -> NavigationDecision:
        """Called before an in-app navigation.

        `project_keys` maps project id to URL key.
        """
        if not self.simulated_roles or self._in_scope(url, project_keys):
            return NavigationDecision.PROCEED

        if self.preferences.warn_on_simulation_leave:
            self.pending_navigation = url
            return NavigationDecision.CONFIRM

        self.stop_all_simulations()
        return NavigationDecision.STOPPED

    def confirm_navigation(
        self, current_project_id: str | None = None, dont_ask_again: bool = False
    ) -> str | None:
        """Accept the queued navigation; returns the URL to navigate to."""
        url = self.pending_navigation
        if url is None:
            return None
        if dont_ask_again:
            self.preferences.warn_on_simulation_leave = False
        if current_project_id is not None:
            self.stop_simulation(current_project_id)
        else:
            self.stop_all_simulations()
        self.pending_navigation = None
        return url

    def cancel_navigation(self) -> None:
        self.pending_navigation = None

    def sync_with_path(self, path: str, project_keys: Mapping[str, str]) -> bool:
        """Fallback for navigations that bypass `request_navigation`.

        Stops every simulation once the path leaves all simulated projects.
        Does nothing while a confirmation is pending. Returns True if it
        stopped anything.
        """
        if not self.simulated_roles or self.pending_navigation is not None:
            return False
        if self._in_scope(path, project_keys):
            return False
        self.stop_all_simulations()
        logger.info("Role simulation ended")
        return True

    def handle_escape(self, project_id: str, overlay_open: bool = False) -> bool:
        """Escape exits the project's simulation unless an overlay has focus."""
        if overlay_open or not self.is_simulating(project_id):
            return False
        self.stop_simulation(project_id)
        return True


def displayed_permissions(
    store: RoleSimulationStore, project_id: str, real_permissions: Iterable[str]
) -> frozenset[str]:
    """Permissions the UI should render for a project.

    The simulated set while simulating, otherwise the real one. Never feed
    this into an authorization decision.
    """
    simulation = store.get_simulation(project_id)
    if simulation is not None:
        return simulation.permissions
    return frozenset(p for p in real_permissions if p in ALL_PERMISSIONS)
