"""
Access Control Module

Role checks and the pause flag consulted by every privileged or lifecycle
operation. The lending core only needs the ``caller_has_role`` predicate;
RoleRegistry is the storage-backed implementation used by default.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Set

from .exceptions import Unauthorized, OperationsPaused, NotPaused, ZeroAddress
from .storage import StorageInterface
from .logging_config import get_logger, log_action


logger = get_logger("lending.access")


class Role(Enum):
    """Roles recognised by the lending core"""
    OWNER = "owner"      # configures credit lines, moves pool funds
    ADMIN = "admin"      # configures borrowers, runs auto repayment
    PAUSER = "pauser"    # pauses and unpauses operations


class AccessController(ABC):
    """Authorization predicate used by the lending core"""
    
    @abstractmethod
    def caller_has_role(self, caller: Optional[str], role: Role) -> bool:
        """Return True when caller holds role"""
        pass
    
    def require_role(self, caller: Optional[str], role: Role) -> None:
        """Raise Unauthorized unless caller holds role"""
        if not caller or not self.caller_has_role(caller, role):
            raise Unauthorized(caller, f"role {role.value}")


class RoleRegistry(AccessController):
    """Storage-backed role assignments; OWNER may grant and revoke every role"""
    
    def __init__(self, storage: StorageInterface, owner: Optional[str] = None):
        self.storage = storage
        self.roles_table = "roles"
        if owner and not self.caller_has_role(owner, Role.OWNER):
            self._set_roles(owner, self.get_roles(owner) | {Role.OWNER})
    
    def get_roles(self, account: str) -> Set[Role]:
        record = self.storage.load(self.roles_table, account)
        if not record:
            return set()
        return {Role(value) for value in record["roles"]}
    
    def caller_has_role(self, caller: Optional[str], role: Role) -> bool:
        if not caller:
            return False
        return role in self.get_roles(caller)
    
    def grant_role(self, caller: str, account: str, role: Role) -> None:
        """Grant role to account; caller must be an owner"""
        self.require_role(caller, Role.OWNER)
        if not account:
            raise ZeroAddress("account")
        self._set_roles(account, self.get_roles(account) | {role})
        log_action(logger, "info", f"Granted {role.value} to {account}",
                   user_id=caller, action="role.granted", resource=f"account:{account}")
    
    def revoke_role(self, caller: str, account: str, role: Role) -> None:
        """Revoke role from account; caller must be an owner"""
        self.require_role(caller, Role.OWNER)
        self._set_roles(account, self.get_roles(account) - {role})
        log_action(logger, "info", f"Revoked {role.value} from {account}",
                   user_id=caller, action="role.revoked", resource=f"account:{account}")
    
    def _set_roles(self, account: str, roles: Set[Role]) -> None:
        self.storage.save(self.roles_table, account, {
            "account": account,
            "roles": sorted(role.value for role in roles)
        })


class PauseControl:
    """Global pause flag; PAUSER role toggles it"""
    
    def __init__(self, storage: StorageInterface, access: AccessController):
        self.storage = storage
        self.access = access
        self.flags_table = "flags"
    
    def is_paused(self) -> bool:
        record = self.storage.load(self.flags_table, "paused")
        return bool(record and record["value"])
    
    def require_not_paused(self) -> None:
        if self.is_paused():
            raise OperationsPaused()
    
    def pause(self, caller: str) -> None:
        self.access.require_role(caller, Role.PAUSER)
        self.require_not_paused()
        self.storage.save(self.flags_table, "paused", {"value": True})
        log_action(logger, "warning", "Operations paused", user_id=caller, action="operations.paused")
    
    def unpause(self, caller: str) -> None:
        self.access.require_role(caller, Role.PAUSER)
        if not self.is_paused():
            raise NotPaused()
        self.storage.save(self.flags_table, "paused", {"value": False})
        log_action(logger, "info", "Operations unpaused", user_id=caller, action="operations.unpaused")
