"""
Tests for role assignments and the pause flag
"""

import pytest

from lending_core.access import Role, RoleRegistry, PauseControl
from lending_core.storage import InMemoryStorage
from lending_core.exceptions import Unauthorized, OperationsPaused, NotPaused, ZeroAddress


@pytest.fixture
def registry():
    return RoleRegistry(InMemoryStorage(), owner="root")


class TestRoleRegistry:
    """Test granting and revoking roles"""
    
    def test_owner_bootstrapped(self, registry):
        assert registry.caller_has_role("root", Role.OWNER)
        assert not registry.caller_has_role("ops", Role.OWNER)
    
    def test_grant_and_revoke(self, registry):
        registry.grant_role("root", "ops", Role.ADMIN)
        registry.grant_role("root", "ops", Role.PAUSER)
        assert registry.get_roles("ops") == {Role.ADMIN, Role.PAUSER}
        
        registry.revoke_role("root", "ops", Role.ADMIN)
        assert not registry.caller_has_role("ops", Role.ADMIN)
        assert registry.caller_has_role("ops", Role.PAUSER)
    
    def test_only_owner_grants(self, registry):
        registry.grant_role("root", "ops", Role.ADMIN)
        with pytest.raises(Unauthorized):
            registry.grant_role("ops", "mallory", Role.OWNER)
        with pytest.raises(Unauthorized):
            registry.revoke_role("ops", "root", Role.OWNER)
    
    def test_empty_account(self, registry):
        with pytest.raises(ZeroAddress):
            registry.grant_role("root", "", Role.ADMIN)
    
    def test_empty_caller_has_no_roles(self, registry):
        assert not registry.caller_has_role("", Role.OWNER)
        assert not registry.caller_has_role(None, Role.OWNER)
        with pytest.raises(Unauthorized):
            registry.require_role(None, Role.OWNER)


class TestPauseControl:
    """Test pausing and unpausing"""
    
    @pytest.fixture
    def pause(self, registry):
        registry.grant_role("root", "guardian", Role.PAUSER)
        return PauseControl(registry.storage, registry)
    
    def test_pause_and_unpause(self, pause):
        assert not pause.is_paused()
        pause.pause("guardian")
        assert pause.is_paused()
        with pytest.raises(OperationsPaused):
            pause.require_not_paused()
        
        pause.unpause("guardian")
        assert not pause.is_paused()
        pause.require_not_paused()
    
    def test_requires_pauser(self, pause):
        with pytest.raises(Unauthorized):
            pause.pause("root")
    
    def test_double_pause(self, pause):
        pause.pause("guardian")
        with pytest.raises(OperationsPaused):
            pause.pause("guardian")
    
    def test_unpause_when_running(self, pause):
        with pytest.raises(NotPaused):
            pause.unpause("guardian")
