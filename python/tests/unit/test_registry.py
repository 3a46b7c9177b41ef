"""Unit tests for ServiceRegistry and address handling."""

import pytest

from servicehub.errors import InvalidAddress
from servicehub.protocols import ServiceState, Transport
from servicehub.registry import ServiceRegistry, infer_transport, normalize_address


# =============================================================================
# Address handling
# =============================================================================

class TestInferTransport:
    @pytest.mark.parametrize("address, expected", [
        ("http://svc1.local", Transport.DESCRIPTOR_HTTP),
        ("https://svc1.local:8443/api", Transport.DESCRIPTOR_HTTP),
        ("ws://localhost:4000", Transport.SOCKET),
        ("wss://node.local", Transport.SOCKET),
        ("serial://ttyUSB0", Transport.PERIPHERAL),
        ("bluetooth://device-1", Transport.PERIPHERAL),
    ])
    def test_scheme_maps_to_transport(self, address, expected):
        assert infer_transport(address) is expected

    @pytest.mark.parametrize("address", [
        "",
        "   ",
        "svc1.local",
        "ftp://svc1.local",
        "http://",
        "http://svc1.local:notaport",
    ])
    def test_malformed_address_raises(self, address):
        with pytest.raises(InvalidAddress):
            infer_transport(address)

    def test_invalid_address_is_value_error(self):
        with pytest.raises(ValueError):
            infer_transport("nonsense")

    def test_normalize_strips_whitespace_and_trailing_slash(self):
        assert normalize_address("  http://svc1.local/ ") == "http://svc1.local"


# =============================================================================
# report / retract
# =============================================================================

class TestReport:
    def test_report_creates_discovered_service(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        service = registry.report("http://svc1.local")

        assert service.address == "http://svc1.local"
        assert service.transport is Transport.DESCRIPTOR_HTTP
        assert service.state is ServiceState.DISCOVERED
        assert service.id
        assert registry.list() == [service]

    def test_report_is_idempotent(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        arrivals = []
        registry.on_arrival(arrivals.append)

        first = registry.report("http://svc1.local")
        second = registry.report("http://svc1.local/")

        assert first is second
        assert len(registry) == 1
        assert arrivals == [first]

    def test_explicit_transport_and_label(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        service = registry.report(
            "http://localhost:4000", transport=Transport.SOCKET, label="LocalNode"
        )
        assert service.transport is Transport.SOCKET
        assert service.display_name == "LocalNode"

    def test_invalid_address_leaves_registry_unchanged(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        arrivals = []
        registry.on_arrival(arrivals.append)

        with pytest.raises(InvalidAddress):
            registry.report("not an address")

        assert len(registry) == 0
        assert arrivals == []

    def test_lookup_by_address_and_id(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        service = registry.report("http://svc1.local")

        assert registry.get("http://svc1.local/") is service
        assert registry.get_by_id(service.id) is service
        assert "http://svc1.local" in registry
        assert registry.get_by_id("missing") is None


class TestRetract:
    def test_retract_closes_and_removes(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        departures = []
        registry.on_departure(departures.append)
        service = registry.report("http://svc1.local")

        retracted = registry.retract("http://svc1.local")

        assert retracted is service
        assert service.state is ServiceState.CLOSED
        assert registry.list() == []
        assert departures == [service]

    def test_retract_is_idempotent(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        departures = []
        registry.on_departure(departures.append)
        registry.report("http://svc1.local")

        registry.retract("http://svc1.local")
        assert registry.retract("http://svc1.local") is None
        assert len(departures) == 1

    def test_retract_unknown_address_is_noop(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        assert registry.retract("http://never.local") is None
        assert registry.retract("garbage") is None

    def test_report_after_retract_creates_new_service(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        first = registry.report("http://svc1.local")
        registry.retract("http://svc1.local")
        second = registry.report("http://svc1.local")

        assert second is not first
        assert second.id != first.id
        assert second.state is ServiceState.DISCOVERED

    def test_mark_active(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        service = registry.report("http://svc1.local")
        registry.mark_active("http://svc1.local")
        assert service.state is ServiceState.ACTIVE

    def test_mark_active_after_retract_is_noop(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        service = registry.report("http://svc1.local")
        registry.retract("http://svc1.local")

        assert registry.mark_active("http://svc1.local") is None
        assert service.state is ServiceState.CLOSED


# =============================================================================
# Subscriptions
# =============================================================================

class TestSubscriptions:
    def test_late_subscriber_sees_live_services(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        a = registry.report("http://a.local")
        b = registry.report("http://b.local")
        registry.retract("http://a.local")

        seen = []
        registry.on_arrival(seen.append)

        assert seen == [b]
        assert a not in seen

    def test_unsubscribe_stops_notifications(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        seen = []
        subscription = registry.on_arrival(seen.append)
        registry.unsubscribe(subscription)

        registry.report("http://svc1.local")
        assert seen == []

    def test_callback_error_does_not_break_report(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        seen = []

        def broken(service):
            raise RuntimeError("boom")

        registry.on_arrival(broken)
        registry.on_arrival(seen.append)

        service = registry.report("http://svc1.local")

        assert seen == [service]
        mock_logger.error.assert_called()

    def test_callback_may_retract_during_arrival(self, mock_logger):
        registry = ServiceRegistry(logger=mock_logger)
        registry.on_arrival(lambda s: registry.retract(s.address))

        service = registry.report("http://svc1.local")

        assert service.state is ServiceState.CLOSED
        assert len(registry) == 0
