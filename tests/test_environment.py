"""
Environment resolver tests.

The production hostname must always win, whatever the global selector says.
"""
import threading

import pytest

from merchant_onboarding.core.environment import (
    Environment,
    EnvironmentConfig,
    EnvironmentResolver,
)
from merchant_onboarding.core.errors import InvalidEnvironmentError


@pytest.fixture
def resolver() -> EnvironmentResolver:
    return EnvironmentResolver(production_hostname="crm.charrg.com")


class TestEnvironmentResolver:
    """Test suite for hostname resolution and the global selector."""

    @pytest.mark.unit
    def test_production_hostname_pins_production(self, resolver: EnvironmentResolver) -> None:
        config = resolver.resolve("crm.charrg.com")

        assert config.environment == Environment.PRODUCTION
        assert config.is_production is True

    @pytest.mark.unit
    def test_production_pin_survives_selector_change(self, resolver: EnvironmentResolver) -> None:
        resolver.set_global_environment("test")

        assert resolver.resolve("crm.charrg.com").environment == Environment.PRODUCTION
        assert resolver.resolve("localhost").environment == Environment.TEST

    @pytest.mark.unit
    def test_production_hostname_is_case_insensitive(self, resolver: EnvironmentResolver) -> None:
        assert resolver.resolve("  CRM.Charrg.com ").environment == Environment.PRODUCTION

    @pytest.mark.unit
    def test_other_hostnames_follow_selector(self, resolver: EnvironmentResolver) -> None:
        config = resolver.resolve("dev.charrg.com")

        assert config.environment == Environment.DEVELOPMENT
        assert config.is_production is False
        assert config.hostname == "dev.charrg.com"

    @pytest.mark.unit
    def test_missing_hostname_follows_selector(self, resolver: EnvironmentResolver) -> None:
        assert resolver.resolve(None).environment == Environment.DEVELOPMENT
        assert resolver.resolve("").environment == Environment.DEVELOPMENT

    @pytest.mark.unit
    def test_default_environment_from_constructor(self) -> None:
        resolver = EnvironmentResolver("crm.charrg.com", default_environment="test")

        assert resolver.global_environment == Environment.TEST

    @pytest.mark.unit
    @pytest.mark.parametrize("value", ["production", "staging", "", None, "TEST"])
    def test_invalid_selector_values_rejected(
        self, resolver: EnvironmentResolver, value: object
    ) -> None:
        with pytest.raises(InvalidEnvironmentError) as exc_info:
            resolver.set_global_environment(value)

        assert exc_info.value.http_status == 400
        assert resolver.global_environment == Environment.DEVELOPMENT

    @pytest.mark.unit
    def test_set_returns_new_selection(self, resolver: EnvironmentResolver) -> None:
        assert resolver.set_global_environment("test") == Environment.TEST
        assert resolver.set_global_environment(Environment.DEVELOPMENT) == Environment.DEVELOPMENT

    @pytest.mark.unit
    def test_resolved_config_is_immutable_snapshot(self, resolver: EnvironmentResolver) -> None:
        config = resolver.resolve("localhost")
        resolver.set_global_environment("test")

        assert config.environment == Environment.DEVELOPMENT
        with pytest.raises(AttributeError):
            config.environment = Environment.TEST  # type: ignore[misc]

    @pytest.mark.unit
    def test_config_to_dict(self) -> None:
        config = EnvironmentConfig(Environment.TEST, False, "localhost")

        assert config.to_dict() == {
            "environment": "test",
            "isProduction": False,
            "url": "localhost",
        }

    @pytest.mark.race
    def test_concurrent_selector_changes(self, resolver: EnvironmentResolver) -> None:
        """Concurrent admins always leave a valid, selectable value behind."""
        values = ["development", "test"] * 50

        threads = [
            threading.Thread(target=resolver.set_global_environment, args=(value,))
            for value in values
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert resolver.global_environment in (Environment.DEVELOPMENT, Environment.TEST)
        assert resolver.resolve("crm.charrg.com").environment == Environment.PRODUCTION
