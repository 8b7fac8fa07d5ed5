"""Authenticated request pipeline for the Kavach backend."""

from typing import Any, Callable, Dict, Optional, Self

import requests
from requests.adapters import HTTPAdapter

from . import __version__
from .credentials import CredentialStore
from .errors import AUTH_ERROR_CODES, ErrorKind, KavachAPIError, classify_error
from .models import Envelope

# Longest slice of an unparseable body kept in an error message.
MAX_BODY_EXCERPT = 500


class RequestExecutor:
    """Sends one backend call and turns the reply into an envelope or an error.

    Every failure path raises ``KavachAPIError``. An authentication failure
    triggers exactly one credential refresh and one resend; transport
    failures are never retried.
    """

    def __init__(
        self: Self,
        base_url: str,
        credentials: CredentialStore,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        logger: Any = None
    ) -> None:
        """Initialize the executor.

        Args:
            base_url: Backend base URL (e.g., https://kavach.example.com/api/v1/)
            credentials: Store that supplies and refreshes the bearer token
            session: HTTP session. A new one is created when omitted
            timeout: Request timeout in seconds
            logger: CLILogger instance. Defaults to the global logger
        """
        self.base_url = base_url if base_url.endswith('/') else base_url + '/'
        self.credentials = credentials
        self.timeout = timeout
        self._logger = logger
        self.session = session or requests.Session()
        self._setup_session()

    @property
    def logger(self: Self) -> Any:
        if self._logger is None:
            from .logger import get_logger
            self._logger = get_logger()
        return self._logger

    def _setup_session(self: Self) -> None:
        """Setup session with connection pooling and no transport retries."""
        adapter = HTTPAdapter(pool_connections=4, pool_maxsize=4, max_retries=0)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def close(self: Self) -> None:
        """Close the session and cleanup resources."""
        if self.session:
            self.session.close()

    def __enter__(self: Self) -> Self:
        return self

    def __exit__(self: Self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def execute(
        self: Self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, str]] = None,
        decode: Optional[Callable[[Any], Any]] = None
    ) -> Envelope:
        """Execute an authenticated request.

        Args:
            method: HTTP method
            path: Path relative to the backend base URL
            json: Request body, serialized as JSON
            params: Query parameters
            decode: Turns the envelope ``data`` into the call site's type

        Returns:
            A successful envelope whose ``data`` went through ``decode``

        Raises:
            KavachAPIError: For every failure, classified
        """
        if not self.credentials.is_authenticated():
            raise KavachAPIError(ErrorKind.NOT_LOGGED_IN)

        url = f"{self.base_url}{path}"
        log_fields = {"method": method, "url": url}

        response = self._send(method, url, json, params)
        payload = self._parse(response)

        if self._is_auth_failure(response, payload):
            self.logger.warn("Access token rejected, refreshing session", log_fields)
            self.credentials.refresh()

            response = self._send(method, url, json, params)
            payload = self._parse(response)
            if self._is_auth_failure(response, payload):
                self.logger.warn("Access token rejected after refresh", log_fields)
                raise KavachAPIError(ErrorKind.INVALID_TOKEN)

        return self._build_envelope(response, payload, decode, log_fields)

    def _send(
        self: Self,
        method: str,
        url: str,
        body: Any,
        params: Optional[Dict[str, str]]
    ) -> requests.Response:
        headers = {
            'Content-Type': 'application/json',
            'User-Agent': f'kavach-cli/{__version__}'
        }
        self.credentials.attach_auth_header(headers)

        try:
            return self.session.request(
                method,
                url,
                headers=headers,
                json=body,
                params=params,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            # No HTTP response was obtained: connection refused, DNS, timeout
            self.logger.error("Backend unreachable", e, {"method": method, "url": url})
            raise KavachAPIError(ErrorKind.UNREACHABLE)

    @staticmethod
    def _parse(response: requests.Response) -> Optional[Dict[str, Any]]:
        """Parse the body as an envelope object, or return None."""
        try:
            payload = response.json()
        except ValueError:
            return None
        if not isinstance(payload, dict) or not isinstance(payload.get("success"), bool):
            return None
        for key in ("error_code", "error_msg"):
            if payload.get(key) is not None and not isinstance(payload[key], str):
                return None
        return payload

    @staticmethod
    def _is_auth_failure(response: requests.Response, payload: Optional[Dict[str, Any]]) -> bool:
        if response.status_code == 401:
            return True
        if payload is None or payload["success"]:
            return False
        return payload.get("error_code") in AUTH_ERROR_CODES

    def _build_envelope(
        self: Self,
        response: requests.Response,
        payload: Optional[Dict[str, Any]],
        decode: Optional[Callable[[Any], Any]],
        log_fields: Dict[str, Any]
    ) -> Envelope:
        if response.status_code == 403:
            raise KavachAPIError(ErrorKind.ACCESS_DENIED)

        if payload is None:
            body = (response.text or "")[:MAX_BODY_EXCERPT]
            error = KavachAPIError(
                ErrorKind.UNCLASSIFIED,
                f"Unexpected response from backend (HTTP {response.status_code}): {body or '<empty body>'}"
            )
            self.logger.error("Malformed response envelope", error, log_fields)
            raise error

        if payload["success"]:
            data = payload.get("data")
            if decode is not None and data is not None:
                try:
                    data = decode(data)
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    error = KavachAPIError(
                        ErrorKind.UNCLASSIFIED,
                        f"Unexpected response data from backend: {e!r}"
                    )
                    self.logger.error("Failed to decode response data", error, log_fields)
                    raise error
            return Envelope(
                success=True,
                data=data,
                error_code=payload.get("error_code") or "",
                error_msg=payload.get("error_msg") or "",
            )

        error = classify_error(payload.get("error_code"), payload.get("error_msg"))
        self.logger.debug(
            "Backend reported failure",
            {**log_fields, "error_code": payload.get("error_code"), "error_kind": error.kind.name}
        )
        raise error
