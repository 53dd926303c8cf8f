"""Caller identity as supplied by the upstream auth gateway.

The gateway validates the token and forwards the subject and role in
headers. This module only reads them and enforces roles.
"""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str


async def current_identity(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Identity:
    """Read the authenticated subject from gateway headers."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Authentication required")
    return Identity(user_id=x_user_id, role=x_user_role.strip().lower())


def require_role(*roles: str):
    """Dependency factory that admits only the given roles."""

    async def dependency(identity: Identity = Depends(current_identity)) -> Identity:
        if identity.role not in roles:
            raise HTTPException(status_code=403, detail="Access denied")
        return identity

    return dependency


require_manager = require_role("manager")
