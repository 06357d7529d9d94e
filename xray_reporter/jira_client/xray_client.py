"""
Xray REST API Client.

Thin authenticated client for the two Jira/Xray endpoints the reporter uses:
- Credential check against the Jira "myself" resource.
- Import of execution results in Xray JSON format.

Submissions create remote issues and are not idempotent, so the client
never retries; a failed request is final for the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests
from loguru import logger

from xray_reporter.config.loader import TrackerSettings


class XrayClientError(Exception):
    """Raised when an Xray API operation fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TrackerConfigError(XrayClientError):
    """The client is not configured well enough to make a request."""


class MissingCredentialsError(TrackerConfigError):
    def __init__(self) -> None:
        super().__init__("Credentials were not provided")


class InvalidEndpointError(TrackerConfigError):
    def __init__(self, base_url: str) -> None:
        super().__init__(f'Invalid URL format (from JIRA_URL): "{base_url}"')
        self.base_url = base_url


class AuthError(XrayClientError):
    """The credential check did not succeed."""


class UnauthorizedError(AuthError):
    def __init__(self) -> None:
        super().__init__("Invalid user credentials provided", status_code=401)


class TrackerConnectionError(AuthError):
    def __init__(self, detail: str = "", status_code: Optional[int] = None) -> None:
        message = "Unable to connect to Jira"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, status_code=status_code)


class SubmitError(XrayClientError):
    """An execution import was rejected or could not be delivered."""


class BadRequestError(SubmitError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)
        self.message = message


class RemoteError(SubmitError):
    def __init__(self, status_code: Optional[int], body: str = "") -> None:
        if status_code is None:
            message = f"Request could not be delivered: {body}"
        else:
            message = f"Request returned with status {status_code}"
        super().__init__(message, status_code=status_code)
        self.body = body


@dataclass(frozen=True)
class Identity:
    """The Jira user the credentials belong to."""

    display_name: str
    name: str


@dataclass(frozen=True)
class ExecutionReceipt:
    """
    Result of a successful execution import.

    Attributes:
        key: Key of the created Test Execution issue (e.g., "EX-1").
        info_messages: Informational messages returned by Xray.
    """

    key: str
    info_messages: List[str] = field(default_factory=list)


class XrayClient:
    """
    Client for the Jira Xray Server/DC REST API.

    Usage::

        client = XrayClient(ConfigLoader().load_tracker_settings())
        identity = client.authenticate()
        receipt = client.submit_execution(record)
        # receipt.key -> "EX-1"
    """

    ENDPOINTS = {
        "myself": "/rest/api/2/myself",
        "import_execution": "/rest/raven/1.0/import/execution",
    }

    def __init__(
        self,
        settings: TrackerSettings,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Initialize the Xray client.

        Args:
            settings: Connection settings, read once per run.
            session: Pre-built HTTP session (mainly for tests). Created
                lazily when omitted.
        """
        self._settings = settings
        self._session = session
        logger.info(f"XrayClient initialized — url={settings.base_url or '(unset)'}")

    @property
    def settings(self) -> TrackerSettings:
        return self._settings

    def _validate_settings(self) -> None:
        if not self._settings.has_credentials:
            raise MissingCredentialsError()

        parsed = urlparse(self._settings.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidEndpointError(self._settings.base_url)

    def _get_session(self) -> requests.Session:
        """Get or create an HTTP session with Basic auth and JSON headers."""
        if self._session is None:
            self._session = requests.Session()
            self._session.verify = self._settings.verify_ssl
            self._session.headers.update({
                "Content-Type": "application/json",
                "Accept": "application/json",
            })
            self._session.auth = (self._settings.username, self._settings.password)

        return self._session

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        """
        Send a request without interpreting the status code.

        Raises:
            requests.RequestException: On transport failure.
        """
        session = self._get_session()
        url = f"{self._settings.base_url}{endpoint}"
        logger.debug(f"Xray API {method} {url}")

        response = session.request(
            method=method,
            url=url,
            timeout=self._settings.timeout_sec,
            **kwargs,
        )
        logger.debug(f"Xray API {method} {url} -> {response.status_code}")
        return response

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self) -> Identity:
        """
        Check the configured credentials against Jira.

        Returns:
            The authenticated user's identity.

        Raises:
            MissingCredentialsError: Username or password is not configured.
            InvalidEndpointError: The base URL is not an absolute http(s) URL.
            UnauthorizedError: Jira answered 401.
            TrackerConnectionError: Any other non-200 answer, an unreadable
                user body, or a transport failure.
        """
        self._validate_settings()

        try:
            response = self._request("GET", self.ENDPOINTS["myself"])
        except requests.exceptions.RequestException as e:
            logger.error(f"Jira connection error: {e}")
            raise TrackerConnectionError(str(e)) from e

        if response.status_code == 401:
            logger.warning("Jira rejected the configured credentials")
            raise UnauthorizedError()

        if response.status_code != 200:
            logger.error(f"Jira credential check returned status {response.status_code}")
            raise TrackerConnectionError(status_code=response.status_code)

        try:
            user = response.json()
        except ValueError as e:
            raise TrackerConnectionError("unreadable user response", status_code=200) from e
        if not isinstance(user, dict):
            raise TrackerConnectionError("unreadable user response", status_code=200)

        identity = Identity(
            display_name=str(user.get("displayName", "")),
            name=str(user.get("name", "")),
        )
        logger.info(f"Authenticated with Jira as {identity.name}")
        return identity

    # ------------------------------------------------------------------
    # Execution import
    # ------------------------------------------------------------------

    def submit_execution(self, record: Any) -> ExecutionReceipt:
        """
        Import one execution into Xray.

        Each successful call creates a new Test Execution issue.

        Args:
            record: A SubmissionRecord (anything with `to_xray_json()`).

        Returns:
            Receipt with the created execution key and info messages.

        Raises:
            BadRequestError: Xray answered 400; carries its `error` text.
            RemoteError: Any other non-200 answer, a transport failure, or
                a 200 without an execution key.
        """
        payload = record.to_xray_json()
        logger.info(f"Importing execution results for {len(payload['tests'])} test(s)")

        try:
            response = self._request("POST", self.ENDPOINTS["import_execution"], json=payload)
        except requests.exceptions.RequestException as e:
            logger.error(f"Xray import failed to send: {e}")
            raise RemoteError(None, str(e)) from e

        body = self._parse_body(response)

        if response.status_code == 400:
            message = body.get("error") if isinstance(body.get("error"), str) else response.text
            logger.warning(f"Xray rejected execution import: {message}")
            raise BadRequestError(message)

        if response.status_code != 200:
            logger.error(f"Xray import returned status {response.status_code}")
            raise RemoteError(response.status_code, response.text)

        issue = body.get("testExecIssue")
        key = issue.get("key") if isinstance(issue, dict) else None
        if not key:
            raise RemoteError(response.status_code, response.text)

        messages = body.get("infoMessages")
        receipt = ExecutionReceipt(
            key=key, info_messages=list(messages) if isinstance(messages, list) else []
        )
        logger.info(f"Test Execution created: {receipt.key}")
        return receipt

    @staticmethod
    def _parse_body(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None
            logger.debug("Xray client session closed")

    def __enter__(self) -> "XrayClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
