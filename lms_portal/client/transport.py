import logging

import requests

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong. Please try again."


class ClientError(Exception):
    """Failure shown to the user. ``user_message`` never carries server internals."""

    def __init__(self, user_message, status=None, kind=None, detail=None):
        super().__init__(user_message)
        self.user_message = user_message
        self.status = status
        self.kind = kind
        self.detail = detail


class NetworkError(ClientError):
    """The server could not be reached or did not answer."""


class HttpError(ClientError):
    """The server answered with a 4xx/5xx status."""

    @classmethod
    def from_response(cls, status, body, failure_message=None):
        body = body if isinstance(body, dict) else {}
        kind = body.get("error")
        detail = body.get("message")
        if status >= 500:
            message = failure_message or GENERIC_FAILURE
        elif status == 401 and failure_message is None:
            message = "Your session has expired. Please sign in again."
        else:
            message = failure_message or detail or GENERIC_FAILURE
        return cls(message, status=status, kind=kind, detail=detail)


class HttpTransport:
    """Talks to a running server over HTTP, keeping the session cookie."""

    def __init__(self, base_url, session=None, timeout=None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(self, method, path, json=None, headers=None, files=None):
        """``files`` follows requests: {"file": (filename, stream, content_type)}."""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, json=json, headers=headers, files=files, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"[network] {method} {path} failed: {e}")
            raise NetworkError(
                "Could not reach the server. Check your connection and try again."
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = None
        return response.status_code, body
