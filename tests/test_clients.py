"""
Unit tests for ClientRegistry.
"""

from token_service.clients import ClientRegistry


class TestClientRegistry:
    """Test cases for ClientRegistry."""

    def test_lookup_known_client(self, registry):
        assert registry.lookup("batch-processor") == "batchSecret456"

    def test_lookup_unknown_client(self, registry):
        assert registry.lookup("ghost") is None

    def test_lookup_is_exact_match(self, registry):
        assert registry.lookup("Service-Client-1") is None
        assert registry.lookup("service-client-1 ") is None

    def test_authenticate(self, registry):
        assert registry.authenticate("service-client-1", "secret123") is True
        assert registry.authenticate("service-client-1", "secret1234") is False
        assert registry.authenticate("service-client-1", "") is False
        assert registry.authenticate("service-client-1", None) is False

    def test_authenticate_unknown_client(self, registry):
        assert registry.authenticate("ghost", "secret123") is False
        assert registry.authenticate("ghost", None) is False

    def test_registry_is_a_snapshot(self):
        clients = {"a": "secret-a"}
        registry = ClientRegistry(clients)
        clients["b"] = "secret-b"
        clients["a"] = "changed"

        assert "b" not in registry
        assert registry.lookup("a") == "secret-a"
        assert len(registry) == 1
        assert registry.client_ids == ("a",)
