import json
import logging
from urllib.parse import unquote

logger = logging.getLogger(__name__)

TOKEN_COOKIE = 'token'
USER_COOKIE = 'user'


class AuthContext:
    """
    Identity of the visitor as issued by the backend's login flow:
    a bearer token cookie and a JSON profile cookie.
    """

    def __init__(self, token=None, name='', email='', subscription=None):
        self.token = token or None
        self.name = name or ''
        self.email = email or ''
        self.subscription = subscription
        self.expired = False

    @property
    def is_authenticated(self):
        return bool(self.token)

    @property
    def use_member_price(self):
        return bool(self.subscription) and self.subscription != "None"

    def invalidate(self):
        """Called when the backend rejects the token; cookies are dropped on the way out."""
        self.expired = True

    @classmethod
    def from_cookies(cls, cookies):
        token = cookies.get(TOKEN_COOKIE)
        profile = {}
        raw_user = cookies.get(USER_COOKIE)
        if raw_user:
            try:
                profile = json.loads(unquote(raw_user))
            except ValueError:
                logger.warning("Ignoring malformed user cookie.")
            if not isinstance(profile, dict):
                profile = {}

        return cls(
            token=token,
            name=profile.get('name', ''),
            email=profile.get('email', ''),
            subscription=profile.get('subscription'),
        )
