"""
Userhub Backend — Roles, Capabilities and Password Hashing
============================================================

What:  The closed set of roles, the capabilities each role grants, and the
       bcrypt helpers used by registration and login.
Why:   Authorization is a set-membership check against a fixed table instead
       of string comparisons scattered across route handlers.
Who:   `userhub.dependencies` resolves an Identity once per request and checks
       capabilities at the route boundary; AccountService hashes and verifies
       passwords.

Role → Capability table:
    user   → read_own_profile
    admin  → everything
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet

import bcrypt

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """
        Resolve a stored role string.

        Rows written before roles were validated may hold anything; those
        resolve to the least-privileged role.
        """
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError):
            logger.warning("Unknown role %r, treating as '%s'", value, cls.USER.value)
            return cls.USER


class Capability(str, Enum):
    """
    Permissions checked by `require_profile_access` on GET /api/users/{id}.

    Upload and profile-update routes take the owner from the form and check
    no capability, so none is defined for them.
    """

    READ_OWN_PROFILE = "read_own_profile"
    READ_ANY_PROFILE = "read_any_profile"


ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.USER: frozenset({Capability.READ_OWN_PROFILE}),
    Role.ADMIN: frozenset(Capability),
}


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, resolved once per request."""

    user_id: str
    role: Role

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return ROLE_CAPABILITIES[self.role]

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


# ── Passwords ─────────────────────────────────────────────────────────────

def hash_password(password: str, rounds: int = 10) -> str:
    """Hash a password with a fresh bcrypt salt; returns the UTF-8 hash string."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Constant-time check of `password` against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Stored password hash is malformed")
        return False
