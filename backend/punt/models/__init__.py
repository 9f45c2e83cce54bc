"""Aggregate model imports so metadata.create_all sees every table."""

from punt.models.user import User  # noqa: F401
from punt.models.project import Project  # noqa: F401
from punt.models.role import ProjectMember, Role  # noqa: F401
from punt.models.system_settings import SYSTEM_SETTINGS_ID, SystemSettings  # noqa: F401
