import hmac
from types import MappingProxyType


class ClientRegistry:
    """Registered machine clients, fixed for the life of the process."""

    def __init__(self, clients):
        self._clients = MappingProxyType(dict(clients))

    def __contains__(self, client_id):
        return client_id in self._clients

    def __len__(self):
        return len(self._clients)

    @property
    def client_ids(self):
        return tuple(self._clients)

    def lookup(self, client_id):
        """Return the shared secret of ``client_id`` or None when unknown."""
        return self._clients.get(client_id)

    def authenticate(self, client_id, client_secret):
        secret = self.lookup(client_id)
        # Unknown clients still pay for one comparison.
        expected = (secret if secret is not None else client_secret or "").encode("utf-8")
        matched = hmac.compare_digest(expected, (client_secret or "").encode("utf-8"))
        return secret is not None and matched
