"""
Request Context
===============

The authenticated tenant/user context is produced upstream by the auth
layer and forwarded as headers. These dependencies turn the headers into a
``RequestContext`` and guard admin-only operations.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from helpdesk.config import ADMIN_ROLES, Role


@dataclass(frozen=True)
class RequestContext:
    """Who is calling, on behalf of which tenant."""
    tenant_id: str
    user_id: Optional[str]
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def get_request_context(
    x_tenant_id: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> RequestContext:
    """Build the caller's context; requests without a tenant are rejected."""
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not associated with tenant"
        )
    return RequestContext(
        tenant_id=x_tenant_id,
        user_id=x_user_id,
        role=x_user_role or Role.AGENT,
    )


async def require_admin(
    context: RequestContext = Depends(get_request_context)
) -> RequestContext:
    """Only tenant or global administrators may change SLA settings."""
    if not context.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can manage SLA configurations"
        )
    return context


async def require_user(
    context: RequestContext = Depends(get_request_context)
) -> RequestContext:
    """Time tracking is attributed to a user, so one must be known."""
    if not context.user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not identified"
        )
    return context
