"""
Team access resolution.

A caller's access to a team is derived purely from the caller's
directory groups and the team's configured ``admin_group`` and
``user_group``.  Nothing is stored; the level is recomputed on every
request.
"""

from enum import Enum
from typing import AbstractSet, Any


class AccessLevel(str, Enum):
    """Access a caller holds on a team.  Members compare by privilege."""

    NONE = "none"
    USER = "user"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _RANK[self]

    def satisfies(self, required: "AccessLevel") -> bool:
        return self.rank >= required.rank


_RANK = {AccessLevel.NONE: 0, AccessLevel.USER: 1, AccessLevel.ADMIN: 2}


def resolve_access_level(team: Any, groups: AbstractSet[str]) -> AccessLevel:
    """Compute the access level ``groups`` grant on ``team``.

    ``team`` may be any object exposing ``is_active``, ``admin_group``
    and ``user_group`` attributes (typically ``TeamRead``).  A missing
    team (``None``) or an inactive one yields ``NONE`` regardless of
    membership.  Admin membership is checked first, so a caller in
    both groups is an admin.

    Parameters
    ----------
    team : TeamRead or None
        Team to evaluate.
    groups : set of str
        Caller's directory groups, already validated at the HTTP
        boundary.

    Returns
    -------
    AccessLevel
        ``ADMIN``, ``USER`` or ``NONE``.
    """
    if team is None or not team.is_active:
        return AccessLevel.NONE
    if team.admin_group in groups:
        return AccessLevel.ADMIN
    if team.user_group in groups:
        return AccessLevel.USER
    return AccessLevel.NONE
