"""
Thin transport for the Tinkoff Invest OpenAPI (v1) REST endpoints.

    GET https://api-invest.tinkoff.ru/openapi/operations
        ?from=...&to=...&figi=...&brokerAccountId=...
    Authorization: Bearer <token>

Every response is wrapped in an envelope::

    {"trackingId": "...", "status": "Ok" | "Error", "payload": {...}}

:meth:`TinkoffRestTransport.request` returns the ``payload`` and raises
:class:`BrokerAPIError` for non-200 responses and ``"Error"`` envelopes.
One attempt per call; no retries.
"""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import Any, Optional

import requests

from tinvest.core.models import STATUS_ERROR

DEFAULT_BASE_URL = "https://api-invest.tinkoff.ru/openapi/"
DEFAULT_TIMEOUT = 30

logger = logging.getLogger(__name__)


class BrokerAPIError(Exception):
    """The broker rejected a request or answered with an error envelope."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class TinkoffRestTransport:
    """
    Authenticated request/response channel to the broker.

    Parameters
    ----------
    token : str
        OpenAPI token, sent as ``Authorization: Bearer <token>``.
    base_url : str
        Override the default base URL (useful for the sandbox or tests).
    account_id : str, optional
        Broker account; when set, every request carries ``brokerAccountId``.
    timeout : float
        Per-request timeout in seconds.
    session : requests.Session, optional
        Injected session (tests pass a mock).
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        account_id: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/"
        self._token = token
        self.account_id = account_id or None
        self.timeout = timeout
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        body: Optional[dict] = None,
    ) -> Any:
        """
        Send one request and return the decoded ``payload``.

        Raises
        ------
        BrokerAPIError
            On a non-200 status or an ``"Error"`` envelope.
        requests.RequestException
            On connection problems and timeouts (propagated unchanged).
        """
        params = dict(params or {})
        if self.account_id:
            params["brokerAccountId"] = self.account_id

        url = self._base_url + path.lstrip("/")
        logger.debug(f"[REST] {method} {path} params={params}")

        response = self._session.request(
            method,
            url,
            params=params or None,
            json=body,
            headers={"Authorization": f"Bearer {self._token}"},
            timeout=self.timeout,
        )

        if response.status_code != HTTPStatus.OK:
            error = self._error_from_response(response)
            logger.error(f"[REST] {method} {path} failed: {error}")
            raise error

        try:
            envelope = response.json()
        except ValueError as exc:
            raise BrokerAPIError(
                f"Invalid JSON in response to {method} {path}: {exc}",
                status_code=response.status_code,
            ) from exc
        if not isinstance(envelope, dict):
            raise BrokerAPIError(
                f"Unexpected response to {method} {path}: {envelope!r}",
                status_code=response.status_code,
            )

        payload = envelope.get("payload")
        if envelope.get("status") == STATUS_ERROR:
            if not isinstance(payload, dict):
                payload = {}
            logger.error(
                f"[REST] {method} {path} error: "
                f"code={payload.get('code')}, msg={payload.get('message')}"
            )
            raise BrokerAPIError(
                payload.get("message", ""),
                code=payload.get("code"),
                status_code=response.status_code,
            )
        return payload

    def get(self, path: str, params: Optional[dict] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, params: Optional[dict] = None, body: Optional[dict] = None) -> Any:
        return self.request("POST", path, params=params, body=body)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _error_from_response(response: requests.Response) -> BrokerAPIError:
        """Build the error text: envelope message, raw body, or the status reason."""
        status_code = response.status_code
        text = response.text

        if not text:
            try:
                reason = HTTPStatus(status_code).phrase
            except ValueError:
                reason = response.reason or "Unknown"
            return BrokerAPIError(f"{reason} ({status_code})", status_code=status_code)

        try:
            payload = json.loads(text).get("payload")
        except (ValueError, AttributeError):
            return BrokerAPIError(text, status_code=status_code)
        if not isinstance(payload, dict):
            return BrokerAPIError(text, status_code=status_code)

        code = payload.get("code")
        return BrokerAPIError(f"{payload.get('message')} ({code})", code=code, status_code=status_code)
