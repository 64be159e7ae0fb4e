"""
access.py - Role-based AuthorizationGuard

RoleRegistry keeps role memberships as sets of accounts. The admin given at
construction holds both DEFAULT_ADMIN_ROLE and DISTRIBUTOR_ROLE, matching what
a deployer is granted at initialization. Only admins may grant or revoke
roles.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Set

from .core import Account, DEFAULT_ADMIN_ROLE, DISTRIBUTOR_ROLE, Unauthorized


class RoleRegistry:
    """
    In-memory role registry implementing AuthorizationGuard.

    Example:
        roles = RoleRegistry(admin="owner")
        roles.grant_role("owner", DISTRIBUTOR_ROLE, "keeper")
        roles.is_authorized_distributor("keeper")   # True
    """

    def __init__(self, admin: Account):
        if not admin or not admin.strip():
            raise ValueError("admin cannot be empty")
        self._members: Dict[str, Set[Account]] = defaultdict(set)
        self._members[DEFAULT_ADMIN_ROLE].add(admin)
        self._members[DISTRIBUTOR_ROLE].add(admin)

    def has_role(self, role: str, account: Account) -> bool:
        return account in self._members.get(role, ())

    def members(self, role: str) -> Set[Account]:
        return set(self._members.get(role, ()))

    def is_authorized_distributor(self, caller: Account) -> bool:
        return self.has_role(DISTRIBUTOR_ROLE, caller)

    def grant_role(self, caller: Account, role: str, account: Account) -> None:
        """
        Add account to role.

        Raises:
            Unauthorized: If caller is not an admin
        """
        self._require_admin(caller)
        if not account or not account.strip():
            raise ValueError("account cannot be empty")
        self._members[role].add(account)

    def revoke_role(self, caller: Account, role: str, account: Account) -> None:
        """
        Remove account from role. Revoking a role the account lacks is a no-op.

        Raises:
            Unauthorized: If caller is not an admin
        """
        self._require_admin(caller)
        self._members[role].discard(account)

    def _require_admin(self, caller: Account) -> None:
        if not self.has_role(DEFAULT_ADMIN_ROLE, caller):
            raise Unauthorized(f"{caller} is missing role {DEFAULT_ADMIN_ROLE}")
