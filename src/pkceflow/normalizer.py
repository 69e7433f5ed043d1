"""Identity normalization for user-info payloads.

Identity providers disagree on where they put the email address and how
they express a user's privileges. :func:`normalize` projects any payload
onto a :class:`~pkceflow.models.NormalizedIdentity`:

* **email** -- ``email``, ``upn``, ``claims.email``, ``claims.upn``; the
  first non-blank string wins, lower-cased and trimmed. Required.
* **privilege_level** -- the first of a fixed list of candidate keys that
  holds an integer, a digit-only string, or a role name known to the
  :class:`~pkceflow.models.PrivilegePolicy`. Optional.
* **role** -- ``role``, ``role_name``, ``roleName``, ``claims.role``,
  ``claims.role_name``; first non-blank string, lower-cased. Optional.

Everything here is pure: no I/O, same input, same output.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from pkceflow.exceptions import IdentityError
from pkceflow.models import NormalizedIdentity, PrivilegePolicy

DEFAULT_PRIVILEGE_POLICY = PrivilegePolicy.from_mapping(
    {
        "admin": 1,
        "superadmin": 1,
        "super_admin": 1,
        "owner": 1,
        "user": 2,
        "tutor": 2,
        "member": 2,
    }
)

EMAIL_KEYS = ("email", "upn")
CLAIM_EMAIL_KEYS = ("email", "upn")
PRIVILEGE_KEYS = (
    "privilege_level",
    "privilegeLevel",
    "privilege",
    "level",
    "role_level",
    "roleLevel",
    "role",
)
CLAIM_PRIVILEGE_KEYS = ("privilege_level", "role_level", "role")
ROLE_KEYS = ("role", "role_name", "roleName")
CLAIM_ROLE_KEYS = ("role", "role_name")


def normalize(
    raw: Mapping[str, Any],
    policy: PrivilegePolicy = DEFAULT_PRIVILEGE_POLICY,
) -> NormalizedIdentity:
    """Project a raw user-info payload onto a canonical identity.

    Args:
        raw: The mapping returned by the user-info endpoint.
        policy: Role-name to privilege-level table.

    Returns:
        The normalized identity; ``raw`` is kept on the result.

    Raises:
        IdentityError: If no usable email is present (code ``missing_email``).
    """
    email = _extract_email(raw)
    if email is None:
        raise IdentityError("UserInfo payload did not include a valid email.")

    return NormalizedIdentity(
        email=email.strip().lower(),
        privilege_level=resolve_privilege_level(raw, policy),
        role=resolve_role(raw),
        raw=dict(raw),
    )


def resolve_privilege_level(
    raw: Mapping[str, Any],
    policy: PrivilegePolicy = DEFAULT_PRIVILEGE_POLICY,
) -> Optional[int]:
    """Return the first privilege level found in *raw*, or ``None``."""
    for value in _candidates(raw, PRIVILEGE_KEYS, CLAIM_PRIVILEGE_KEYS):
        # bool is an int subclass but never a privilege level
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            if value.isascii() and value.isdigit():
                return int(value)
            level = policy.level_for(value)
            if level is not None:
                return level
    return None


def resolve_role(raw: Mapping[str, Any]) -> Optional[str]:
    """Return the first non-blank role name in *raw*, lower-cased, or ``None``."""
    for value in _candidates(raw, ROLE_KEYS, CLAIM_ROLE_KEYS):
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
    return None


def _extract_email(raw: Mapping[str, Any]) -> Optional[str]:
    for value in _candidates(raw, EMAIL_KEYS, CLAIM_EMAIL_KEYS):
        if isinstance(value, str) and value.strip():
            return value
    return None


def _candidates(
    raw: Mapping[str, Any],
    keys: tuple[str, ...],
    claim_keys: tuple[str, ...],
) -> list[Any]:
    """Values under *keys*, then under ``claims.<claim_keys>`` when present."""
    values = [raw.get(key) for key in keys]
    claims = raw.get("claims")
    if isinstance(claims, Mapping):
        values.extend(claims.get(key) for key in claim_keys)
    return values
