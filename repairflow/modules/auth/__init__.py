# Authentication module

from repairflow.modules.auth.dependencies import (
    get_current_user,
    get_current_admin,
    get_optional_user,
    require_roles,
    require_admin,
    require_staff,
)

__all__ = [
    "get_current_user",
    "get_current_admin",
    "get_optional_user",
    "require_roles",
    "require_admin",
    "require_staff",
]
