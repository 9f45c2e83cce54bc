from fastapi import APIRouter, Depends

from punt.auth.deps import get_current_user
from punt.auth.permissions import ALL_PERMISSIONS, get_sorted_categories_with_permissions
from punt.models.user import User
from punt.schemas.permissions import CategoryOut, PermissionCatalog, PermissionMetaOut

router = APIRouter()


@router.get("", response_model=PermissionCatalog)
async def list_permissions(_user: User = Depends(get_current_user)):
    """The permission catalog, grouped by category in display order."""
    categories = [
        CategoryOut(
            key=category.key,
            label=category.label,
            description=category.description,
            order=category.order,
            permissions=[PermissionMetaOut.model_validate(p) for p in perms],
        )
        for category, perms in get_sorted_categories_with_permissions()
    ]
    return PermissionCatalog(permissions=list(ALL_PERMISSIONS), categories=categories)
