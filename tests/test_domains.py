import logging

import pytest

from partitioned_cht.core.exceptions import ActivationError, ConfigurationError
from partitioned_cht.coupling import ActivationState, DomainRegistry


@pytest.fixture
def registry(fake_engine):
    return DomainRegistry(fake_engine)


class TestResolution:
    def test_resolves_in_configured_order(self, registry):
        domains = registry.resolve_domains("Fluid_Volume", ["S_Plate", "S_Die"])
        assert domains.fluid.name == "Fluid_Volume"
        assert [s.name for s in domains.solids] == ["S_Plate", "S_Die"]
        assert domains.names == ["Fluid_Volume", "S_Plate", "S_Die"]

    def test_missing_domain_is_configuration_error(self, registry):
        with pytest.raises(ConfigurationError, match="S_Missing") as excinfo:
            registry.resolve_domains("Fluid_Volume", ["S_Die", "S_Missing"])
        assert isinstance(excinfo.value.__cause__, KeyError)

    def test_missing_fluid_resolved_first(self, registry, fake_engine):
        calls = []
        original = fake_engine.resolve_domain
        fake_engine.resolve_domain = lambda name: calls.append(name) or original(name)

        with pytest.raises(ConfigurationError):
            registry.resolve_domains("Air", ["S_Die"])
        assert calls == ["Air"]

    def test_duplicate_names_rejected(self, registry):
        with pytest.raises(ConfigurationError, match="unique"):
            registry.resolve_domains("Fluid_Volume", ["S_Die", "S_Die"])

    def test_empty_solids_rejected(self, registry):
        with pytest.raises(ConfigurationError):
            registry.resolve_domains("Fluid_Volume", [])

    def test_confirmation_logged(self, registry, caplog):
        with caplog.at_level(logging.INFO, logger="partitioned_cht.coupling.domains"):
            registry.resolve_domains("Fluid_Volume", ["S_Die"])
        assert "Found continuum: Fluid_Volume" in caplog.text
        assert "Found continuum: S_Die" in caplog.text


class TestActivation:
    def test_set_active_is_idempotent(self, registry, fake_engine):
        handle = registry.resolve("S_Die")
        registry.set_active(handle, True)
        assert fake_engine.set_active_calls == 0

        registry.set_active(handle, False)
        registry.set_active(handle, False)
        assert fake_engine.set_active_calls == 1
        assert not registry.is_active(handle)

    def test_fast_phase_activation(self, registry):
        domains = registry.resolve_domains("Fluid_Volume", ["S_Die", "S_Plate"])
        domains.activate(ActivationState.FAST)

        assert registry.is_active(domains.fluid)
        assert not any(registry.is_active(s) for s in domains.solids)
        domains.verify(ActivationState.FAST)

    def test_slow_phase_activation(self, registry):
        domains = registry.resolve_domains("Fluid_Volume", ["S_Die", "S_Plate"])
        domains.activate(ActivationState.SLOW)

        assert not registry.is_active(domains.fluid)
        assert all(registry.is_active(s) for s in domains.solids)
        domains.verify(ActivationState.SLOW)

    def test_verify_detects_mismatch(self, registry):
        domains = registry.resolve_domains("Fluid_Volume", ["S_Die", "S_Plate"])
        domains.activate(ActivationState.SLOW)
        registry.set_active(domains.solids[1], False)

        with pytest.raises(ActivationError, match="S_Plate"):
            domains.verify(ActivationState.SLOW)
