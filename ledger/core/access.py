"""
Role-based capability checks.

The pool only asks one question: does principal P hold role R.
"""
import logging
from typing import Dict, Iterable, Optional, Set

from protocol.types.common import Role, Unauthorized

logger = logging.getLogger(__name__)


class AccessControl:
    def __init__(self, admin: Optional[str] = None):
        self._roles: Dict[Role, Set[str]] = {role: set() for role in Role}
        if admin:
            self._roles[Role.ADMIN].add(admin)

    def has_role(self, role: Role, principal: str) -> bool:
        return principal in self._roles[role]

    def require_role(self, role: Role, principal: str) -> None:
        if not self.has_role(role, principal):
            raise Unauthorized(f"{principal} lacks role {role.value}", role=role.value, principal=principal)

    def _set_role(self, role: Role, principal: str) -> None:
        self._roles[role].add(principal)

    def grant_role(self, granter: str, role: Role, principal: str) -> None:
        self.require_role(Role.ADMIN, granter)
        self._set_role(role, principal)
        logger.info(f"Role {role.value} granted to {principal} by {granter}")

    def revoke_role(self, revoker: str, role: Role, principal: str) -> None:
        self.require_role(Role.ADMIN, revoker)
        self._roles[role].discard(principal)
        logger.info(f"Role {role.value} revoked from {principal} by {revoker}")

    @classmethod
    def with_operators(cls, operators: Iterable[str], admin: Optional[str] = None) -> 'AccessControl':
        """Bootstraps a role table, e.g. from a pool preset."""
        ac = cls(admin=admin)
        for op in operators:
            ac._set_role(Role.OPERATOR, op)
        return ac
