import json
import logging

logger = logging.getLogger(__name__)

CART_KEY = 'cart'
DISCOUNT_KEY = 'checkout_discount'
CHECKOUT_SESSION_KEY = 'checkout_session'


class KeyValueStore:
    """
    String key-value store holding the checkout's persisted records.
    Values are JSON text, written last-write-wins with no locking.
    """

    def get(self, key):
        raise NotImplementedError

    def set(self, key, value):
        raise NotImplementedError

    def remove(self, key):
        raise NotImplementedError

    def get_json(self, key, default=None):
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed '{key}' record: {raw!r}")
            return default

    def set_json(self, key, value):
        self.set(key, json.dumps(value))


class SessionStore(KeyValueStore):
    """Store backed by the Django session of the current visitor."""

    def __init__(self, session):
        self.session = session

    def get(self, key):
        return self.session.get(key)

    def set(self, key, value):
        self.session[key] = value

    def remove(self, key):
        self.session.pop(key, None)


class InMemoryStore(KeyValueStore):
    def __init__(self, initial=None):
        self.data = dict(initial or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def remove(self, key):
        self.data.pop(key, None)
