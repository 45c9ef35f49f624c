"""Role slot rules.

Ten slots exist for every session: seats "1" to "9" and "dealer". An identity
holds at most one slot, so claiming a slot vacates whatever the identity held
before. These functions work on plain ``claimed_roles`` dicts and never
mutate their input; the service layer runs them inside a store transaction.
"""

from typing import Dict, Iterable, Optional

from rehearsal.exceptions import RoleUnavailable

DEALER_ROLE = "dealer"
SEAT_ROLES = tuple(str(seat) for seat in range(1, 10))
ROLE_IDS = SEAT_ROLES + (DEALER_ROLE,)


def normalize_role_id(role_id) -> str:
    """Accept ``5``, ``"5"`` or ``"dealer"`` and return the slot key."""
    if isinstance(role_id, bool):
        raise ValueError(f"Unknown role: {role_id!r}")
    key = str(role_id).strip().lower()
    if key not in ROLE_IDS:
        raise ValueError(f"Unknown role: {role_id!r}")
    return key


def empty_claims() -> Dict[str, Optional[str]]:
    return {role_id: None for role_id in ROLE_IDS}


def role_held_by(claimed_roles: Dict[str, Optional[str]], identity_id: str) -> Optional[str]:
    for role_id in ROLE_IDS:
        if claimed_roles.get(role_id) == identity_id:
            return role_id
    return None


def claim_role(
    claimed_roles: Dict[str, Optional[str]], role_id, identity_id: str
) -> Dict[str, Optional[str]]:
    """Return new claims with ``identity_id`` moved into ``role_id``.

    Raises:
        RoleUnavailable: the slot belongs to somebody else
    """
    role_id = normalize_role_id(role_id)
    holder = claimed_roles.get(role_id)
    if holder is not None and holder != identity_id:
        raise RoleUnavailable(role_id)
    claims = release_roles(claimed_roles, [identity_id])
    claims[role_id] = identity_id
    return claims


def release_roles(
    claimed_roles: Dict[str, Optional[str]], identity_ids: Iterable[str]
) -> Dict[str, Optional[str]]:
    """Return new claims with every slot held by ``identity_ids`` cleared."""
    leaving = set(identity_ids)
    claims = empty_claims()
    for role_id in ROLE_IDS:
        holder = claimed_roles.get(role_id)
        claims[role_id] = None if holder in leaving else holder
    return claims
