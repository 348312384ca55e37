import time
import logging
import requests
from django.conf import settings

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error - please check your connection"

STATUS_MESSAGES = {
    401: "Authentication required - please log in again",
    403: "Access denied - insufficient permissions",
    404: "Resource not found",
    422: "Validation error",
    429: "Too many requests - please try again later",
    500: "Server error - please try again later",
}

# The backend's own message is preferred for these statuses.
PAYLOAD_MESSAGE_STATUSES = (403, 404, 422)


class ApiError(Exception):
    """Raised when the backend API rejects a call or cannot be reached."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload if payload is not None else {}


class ApiResponse:
    """Status and decoded JSON body of a backend response."""

    def __init__(self, status_code, payload):
        self.status_code = status_code
        self.payload = payload

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    @property
    def message(self):
        if isinstance(self.payload, dict):
            return self.payload.get('message') or self.payload.get('error')
        return None


def error_message_for(status_code, payload=None):
    """Maps an HTTP status (and optional error payload) to a user-facing message."""
    payload_message = None
    if isinstance(payload, dict):
        payload_message = payload.get('message')

    if status_code in PAYLOAD_MESSAGE_STATUSES and payload_message:
        return payload_message
    if status_code in STATUS_MESSAGES:
        return STATUS_MESSAGES[status_code]
    return payload_message or f"API Error: {status_code}"


class ApiClient:
    """
    JSON client for the checkout backend.

    `send` returns the raw response so callers can classify business states
    carried in error payloads; `call` returns the body of a successful
    response and raises ApiError otherwise.
    """

    def __init__(self, token=None, on_unauthorized=None):
        self.base_url = settings.CHECKOUT_API_URL.rstrip('/')
        self.timeout = settings.CHECKOUT_API_TIMEOUT
        self.retry_attempts = settings.CHECKOUT_API_RETRY_ATTEMPTS
        self.retry_delay = settings.CHECKOUT_API_RETRY_DELAY
        self.token = token
        self.on_unauthorized = on_unauthorized

        self.headers = {"Content-Type": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    @property
    def is_authenticated(self):
        return bool(self.token)

    def url_for(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def _wait(self, attempt):
        if self.retry_delay:
            time.sleep(self.retry_delay * attempt)

    def send(self, method, path, json=None, params=None):
        url = self.url_for(path)
        attempt = 0

        while True:
            try:
                response = requests.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self.headers,
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                if attempt < self.retry_attempts:
                    attempt += 1
                    logger.warning(f"{method} {url} failed ({e}), retry {attempt}/{self.retry_attempts}")
                    self._wait(attempt)
                    continue
                logger.error(f"{method} {url} unreachable: {e}")
                raise ApiError(NETWORK_ERROR_MESSAGE) from e

            if response.status_code >= 500 and attempt < self.retry_attempts:
                attempt += 1
                logger.warning(f"{method} {url} returned {response.status_code}, retry {attempt}/{self.retry_attempts}")
                self._wait(attempt)
                continue

            try:
                payload = response.json()
            except ValueError:
                payload = {}

            if response.status_code == 401:
                logger.info(f"{method} {url} rejected the session token.")
                if self.on_unauthorized:
                    self.on_unauthorized()

            return ApiResponse(response.status_code, payload)

    def call(self, method, path, json=None, params=None):
        result = self.send(method, path, json=json, params=params)
        if result.ok:
            return result.payload

        message = error_message_for(result.status_code, result.payload)
        logger.error(f"{method} {path} failed: {result.status_code} - {message}")
        raise ApiError(message, status_code=result.status_code, payload=result.payload)

    def get(self, path, params=None):
        return self.call('GET', path, params=params)

    def post(self, path, data=None):
        return self.call('POST', path, json=data)

    def put(self, path, data=None):
        return self.call('PUT', path, json=data)
