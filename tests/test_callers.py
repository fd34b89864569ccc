"""
Caller role tests.
"""
import pytest

from merchant_onboarding.core.callers import Caller


class TestCaller:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "roles,is_admin,is_agent",
        [
            (["admin"], True, False),
            (["super_admin"], True, False),
            (["agent"], False, True),
            (["agent", "admin"], True, True),
            (["merchant"], False, False),
            ([], False, False),
            (None, False, False),
        ],
    )
    def test_role_flags(self, roles: list, is_admin: bool, is_agent: bool) -> None:
        caller = Caller.from_roles("user-1", roles)

        assert caller.is_admin is is_admin
        assert caller.is_agent is is_agent
