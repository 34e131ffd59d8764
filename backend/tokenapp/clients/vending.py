"""
Meter vending API client (Stronpower compatible).

The orchestrator only needs request/response plus a clear success or
failure signal. Every failure mode is surfaced as VendingError, with
timeouts as the VendingTimeout subclass so callers can tell them apart.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx


class VendingError(Exception):
    """Raised when the vending API does not return a usable token."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class VendingTimeout(VendingError):
    """Raised when the vending API does not answer within the timeout."""


@dataclass(frozen=True)
class VendResult:
    token_code: str


class VendingClient:
    def __init__(
        self,
        url: str | None = None,
        company_name: str = "",
        username: str = "",
        password: str = "",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.company_name = company_name
        self.username = username
        self.password = password
        self.timeout = timeout
        self.transport = transport

    def init_app(self, app) -> None:
        self.url = app.config.get("VENDING_API_URL")
        self.company_name = app.config.get("VENDING_COMPANY_NAME", "")
        self.username = app.config.get("VENDING_USERNAME", "")
        self.password = app.config.get("VENDING_PASSWORD", "")
        self.timeout = app.config.get("VENDING_TIMEOUT", 30.0)
        app.extensions["vending_client"] = self

    def _check_credentials(self) -> None:
        if not (self.url and self.company_name and self.username and self.password):
            raise VendingError("Vending API credentials are not configured")

    def vend(self, order_id: str, meter_id: str, amount: int) -> VendResult:
        """
        Request a token for meter_id worth amount Rupiah.

        order_id travels with the request as the caller's reference; the
        orchestrator guarantees at most one successful vend per order.
        """
        self._check_credentials()
        if not meter_id:
            raise VendingError("Meter ID is required")
        if amount is None or int(amount) <= 0:
            raise VendingError("Invalid amount provided")

        body = {
            "CompanyName": self.company_name,
            "UserName": self.username,
            "PassWord": self.password,
            "MeterID": meter_id,
            "is_vend_by_unit": "false",
            "Amount": str(int(amount)),
            "Reference": order_id,
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.url, json=body)
        except httpx.TimeoutException as exc:
            raise VendingTimeout(f"Vending API timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise VendingError(f"Vending API unreachable: {exc}") from exc

        text = response.text or ""

        if response.is_error:
            raise VendingError(_error_message(response, text), status_code=response.status_code)

        if text.strip() in ("", "{}"):
            raise VendingError(
                "Vending API returned an empty response",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise VendingError(
                "Vending API returned a non-JSON response",
                status_code=response.status_code,
            ) from exc

        if not (isinstance(data, list) and data and isinstance(data[0], dict) and "Token" in data[0]):
            raise VendingError(
                "Unexpected vending API response format",
                status_code=response.status_code,
            )

        token = data[0].get("Token")
        if token is None or str(token).strip() == "":
            raise VendingError(
                "Vending API returned an empty token",
                status_code=response.status_code,
            )

        return VendResult(token_code=str(token))


def _error_message(response: httpx.Response, text: str) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("message", "Message", "error", "detail"):
            if data.get(key):
                return str(data[key])
    if text.strip() and len(text) < 200:
        return text.strip()
    return f"Vending API request failed with status {response.status_code}"
