from dataclasses import dataclass
from typing import FrozenSet

from fastapi import Depends, HTTPException, status, Request
from .models.user_model import User
from .permissions import Capability, capabilities_for
from .security import current_active_user


@dataclass(frozen=True)
class SessionContext:
    """Authenticated user plus the capabilities of their role, resolved once per request."""
    user: User
    capabilities: FrozenSet[Capability]

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


async def get_session_context(user: User = Depends(current_active_user)) -> SessionContext:
    return SessionContext(user=user, capabilities=capabilities_for(user.role))


def require_capability(capability: Capability):
    async def current_context_has_capability(ctx: SessionContext = Depends(get_session_context)):
        if not ctx.can(capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted",
            )
        return ctx
    return current_context_has_capability


exam_manager = require_capability(Capability.MANAGE_EXAMS)
exam_taker = require_capability(Capability.TAKE_EXAMS)
results_viewer = require_capability(Capability.VIEW_ALL_RESULTS)


async def users_router_permission(request: Request, ctx: SessionContext = Depends(get_session_context)):
    method = request.method.upper()
    # Mutating user records needs manage_users; reads are left to fastapi-users
    if method in ("POST", "PUT", "PATCH", "DELETE"):
        if not ctx.can(Capability.MANAGE_USERS):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")
    return True
