"""
Payment gateway client (Midtrans Snap compatible).

Only the contract the settlement flow relies on is implemented:
create a hosted payment session for an order and classify the status
values the gateway later reports through its notification callback.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field

import httpx


GATEWAY_SUCCESS_STATUSES = {"settlement", "capture"}
GATEWAY_PENDING_STATUSES = {"pending"}

OUTCOME_SUCCESS = "SUCCESS"
OUTCOME_PENDING = "PENDING"
OUTCOME_FAILURE = "FAILURE"


class GatewaySessionError(Exception):
    """Raised when the gateway refuses or fails to create a payment session."""

    def __init__(self, message: str, status_code: int | None = None, order_id: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.order_id = order_id


@dataclass(frozen=True)
class Buyer:
    name: str
    email: str
    phone: str | None = None

    def split_name(self) -> tuple[str, str]:
        parts = self.name.strip().split()
        if not parts:
            return "Customer", "Customer"
        first = parts[0]
        last = " ".join(parts[1:]) if len(parts) > 1 else first
        return first, last


@dataclass(frozen=True)
class RedirectUrls:
    finish: str
    unfinish: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ItemDetail:
    id: str
    price: int
    name: str
    quantity: int = 1


@dataclass(frozen=True)
class GatewaySession:
    session_token: str
    redirect_url: str | None = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)


def classify_gateway_status(gateway_status: str | None) -> str:
    """
    Map a gateway transaction status onto the three outcomes the
    orchestrator distinguishes.

    settlement/capture -> SUCCESS, pending -> PENDING, anything else -> FAILURE.
    """
    status = (gateway_status or "").strip().lower()
    if status in GATEWAY_SUCCESS_STATUSES:
        return OUTCOME_SUCCESS
    if status in GATEWAY_PENDING_STATUSES:
        return OUTCOME_PENDING
    return OUTCOME_FAILURE


def _with_status(url: str, status: str, order_id: str) -> str:
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}status={status}&ref={order_id}"


class PaymentGatewayClient:
    """Thin httpx wrapper around the gateway's session endpoint."""

    def __init__(
        self,
        url: str | None = None,
        server_key: str = "",
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.server_key = server_key
        self.timeout = timeout
        self.transport = transport

    def init_app(self, app) -> None:
        self.url = app.config.get("PAYMENT_GATEWAY_URL")
        self.server_key = app.config.get("PAYMENT_GATEWAY_SERVER_KEY", "")
        self.timeout = app.config.get("PAYMENT_GATEWAY_TIMEOUT", 15.0)
        app.extensions["payment_gateway"] = self

    def _headers(self) -> dict:
        encoded = base64.b64encode(f"{self.server_key}:".encode()).decode()
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Basic {encoded}",
        }

    def build_payload(
        self,
        *,
        order_id: str,
        amount: int,
        buyer: Buyer,
        redirect_urls: RedirectUrls,
        item_details: list[ItemDetail] | None = None,
    ) -> dict:
        first_name, last_name = buyer.split_name()
        finish = redirect_urls.finish
        payload = {
            "transaction_details": {
                "order_id": order_id,
                "gross_amount": amount,
            },
            "customer_details": {
                "first_name": first_name,
                "last_name": last_name,
                "email": buyer.email,
                "phone": buyer.phone or "N/A",
            },
            "callbacks": {
                "finish": _with_status(finish, "success", order_id),
                "unfinish": _with_status(redirect_urls.unfinish or finish, "unfinish", order_id),
                "error": _with_status(redirect_urls.error or finish, "error", order_id),
            },
        }
        if item_details:
            payload["item_details"] = [
                {"id": i.id, "price": i.price, "quantity": i.quantity, "name": i.name}
                for i in item_details
            ]
        return payload

    def create_session(
        self,
        order_id: str,
        amount: int,
        buyer: Buyer,
        redirect_urls: RedirectUrls,
        item_details: list[ItemDetail] | None = None,
    ) -> GatewaySession:
        """
        Request a hosted payment session for an order.

        Raises:
            GatewaySessionError: On transport errors, non-2xx answers, or a
                2xx answer without a session token.
        """
        if not self.url:
            raise GatewaySessionError("Payment gateway URL is not configured")

        payload = self.build_payload(
            order_id=order_id,
            amount=amount,
            buyer=buyer,
            redirect_urls=redirect_urls,
            item_details=item_details,
        )

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.url, json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            raise GatewaySessionError(f"Payment gateway unreachable: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            messages = data.get("error_messages") if isinstance(data, dict) else None
            if messages:
                message = ", ".join(str(m) for m in messages)
            else:
                message = (data.get("message") if isinstance(data, dict) else None) or (
                    f"Payment gateway error: {response.status_code}"
                )
            raise GatewaySessionError(message, status_code=response.status_code)

        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise GatewaySessionError(
                "Payment gateway answered without a session token",
                status_code=response.status_code,
            )

        return GatewaySession(
            session_token=token,
            redirect_url=data.get("redirect_url"),
            raw=data,
        )
