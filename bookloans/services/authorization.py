"""Role checks shared by the ledger and the CRUD services."""

from __future__ import annotations

from typing import Optional

from bookloans.models.domain import Role
from bookloans.services.errors import Forbidden, Unauthorized
from bookloans.services.identity import Identity


def authorize(identity: Optional[Identity], *roles: Role) -> Identity:
    """Return ``identity`` if it holds one of ``roles``.

    Raises Unauthorized when nobody is logged in and Forbidden when the role
    does not match.
    """
    if identity is None:
        raise Unauthorized()
    if identity.role not in roles:
        raise Forbidden()
    return identity


def authorize_self_or(identity: Optional[Identity], owner_id: str, *roles: Role) -> Identity:
    """Like ``authorize``, but the owner of the resource always passes."""
    if identity is None:
        raise Unauthorized()
    if identity.user_id == owner_id:
        return identity
    return authorize(identity, *roles)
