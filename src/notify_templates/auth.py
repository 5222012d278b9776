"""Authorization seam for privileged operations.

Nothing here talks to an identity provider.  Callers inject a
:class:`RoleLookup` (where an admin's role is stored) and, for
:func:`verify_users`, a :class:`UserDirectory` (which accounts still
exist).  Checks run before any data access and distinguish an anonymous
caller (:class:`AuthenticationRequiredError`) from one lacking the role
(:class:`PermissionDeniedError`).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from notify_templates.exceptions import AuthenticationRequiredError, PermissionDeniedError

logger = logging.getLogger(__name__)

SUPER_ADMIN_ROLE = "super_admin"
USER_LOOKUP_BATCH_SIZE = 100


class Principal(BaseModel):
    """The authenticated caller."""

    model_config = ConfigDict(frozen=True)

    uid: str
    email: str = ""


@runtime_checkable
class RoleLookup(Protocol):
    async def get_role(self, uid: str) -> str | None:
        """Return the stored admin role for *uid*, or ``None`` if there is none."""
        ...


@runtime_checkable
class UserDirectory(Protocol):
    async def find_missing(self, uids: Sequence[str]) -> list[str]:
        """Return the subset of *uids* (at most 100) with no account."""
        ...


AuthorizationCheck = Callable[[Principal | None], Awaitable[Principal]]


def require_role(roles: RoleLookup, role: str = SUPER_ADMIN_ROLE) -> AuthorizationCheck:
    """Build a check that admits only callers whose stored role is *role*."""

    async def check(principal: Principal | None) -> Principal:
        if principal is None or not principal.uid:
            raise AuthenticationRequiredError("Authentication required")
        stored = await roles.get_role(principal.uid)
        if stored != role:
            logger.warning("Denied %s: role %r, required %r", principal.uid, stored, role)
            raise PermissionDeniedError(f"{role.replace('_', ' ').title()} access required")
        return principal

    return check


class VerifyUsersResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deleted_uids: list[str] = Field(default_factory=list, alias="deletedUids")


async def verify_users(
    principal: Principal | None,
    uids: Sequence[str] | None,
    *,
    authorize: AuthorizationCheck,
    directory: UserDirectory,
    batch_size: int = USER_LOOKUP_BATCH_SIZE,
) -> VerifyUsersResult:
    """Report which of *uids* no longer have an account.

    The caller is authorized before any lookup.  Lookups go to *directory*
    in batches of at most *batch_size* ids.
    """
    await authorize(principal)
    if not uids or isinstance(uids, str):
        return VerifyUsersResult()

    deleted: list[str] = []
    ids = list(uids)
    for start in range(0, len(ids), batch_size):
        deleted.extend(await directory.find_missing(ids[start : start + batch_size]))
    return VerifyUsersResult(deleted_uids=deleted)
