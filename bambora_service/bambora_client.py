"""Bambora (formerly Beanstream) REST API client.

Only gateway communication lives here: one HTTP call per method, no
retries and no local state. Payments calls authenticate with the payments
passcode, profile and card calls with the profiles passcode.

Documentation: https://dev.na.bambora.com/docs/references/payment_APIs/
"""

import base64
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Union

import httpx

from bambora_service import config
from bambora_service.config import MerchantCredentials
from bambora_service.exceptions import RemoteProcessorError
from bambora_service.schemas import BillingAddress

logger = logging.getLogger(__name__)

PAYMENTS = "payments"
PROFILES = "profiles"


@dataclass(frozen=True)
class ProfileCard:
    """A card stored on a Bambora payment profile."""

    profile_id: str
    card_id: str

    def to_payload(self, complete: bool) -> dict:
        return {
            "payment_method": "payment_profile",
            "payment_profile": {
                "customer_code": self.profile_id,
                "card_id": self.card_id,
                "complete": complete,
            },
        }


@dataclass(frozen=True)
class SingleUseToken:
    """A one-time token issued by the Custom Checkout card fields."""

    token: str
    name: str = ""

    def to_payload(self, complete: bool) -> dict:
        return {
            "payment_method": "token",
            "token": {
                "code": self.token,
                "name": self.name,
                "complete": complete,
            },
        }

    def __repr__(self):
        return "SingleUseToken(token=<redacted>)"


ChargeTarget = Union[ProfileCard, SingleUseToken]


def _amount(value: Decimal) -> float:
    return float(value)


class BamboraClient:
    def __init__(
        self,
        credentials: MerchantCredentials,
        base_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
    ):
        self.credentials = credentials
        self._http = http_client or httpx.Client(
            base_url=base_url or config.api_url(),
            timeout=timeout if timeout is not None else config.api_timeout(),
        )

    def close(self):
        self._http.close()

    def _headers(self, category: str) -> dict:
        passcode = f"{self.credentials.merchant_id}:{self.credentials.api_key_for(category)}"
        encoded = base64.b64encode(passcode.encode()).decode()
        return {
            "Authorization": f"Passcode {encoded}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, category: str, json: dict | None = None) -> dict:
        logger.info("Bambora %s %s (%s)", method, path, category)
        try:
            response = self._http.request(method, path, json=json, headers=self._headers(category))
        except httpx.HTTPError as e:
            logger.warning("Bambora %s %s failed: %s", method, path, e)
            raise RemoteProcessorError(str(e)) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            message = data.get("message") or f"HTTP {response.status_code}"
            logger.warning(
                "Bambora %s %s rejected: code=%s message=%s",
                method, path, data.get("code"), message,
            )
            raise RemoteProcessorError(
                message,
                code=data.get("code"),
                category=data.get("category"),
                status_code=response.status_code,
            )
        return data

    # Payments API

    def charge(self, order_number: str, amount: Decimal, target: ChargeTarget, complete: bool = True) -> dict:
        body = {"order_number": order_number, "amount": _amount(amount)}
        body.update(target.to_payload(complete))
        return self._request("POST", "/v1/payments", PAYMENTS, json=body)

    def complete_authorization(self, transaction_id: str, amount: Decimal) -> dict:
        return self._request(
            "POST",
            f"/v1/payments/{transaction_id}/completions",
            PAYMENTS,
            json={"amount": _amount(amount)},
        )

    def void_authorization(self, transaction_id: str, amount: Decimal) -> dict:
        return self._request(
            "POST",
            f"/v1/payments/{transaction_id}/void",
            PAYMENTS,
            json={"amount": _amount(amount)},
        )

    def refund(self, transaction_id: str, amount: Decimal, order_number: str) -> dict:
        return self._request(
            "POST",
            f"/v1/payments/{transaction_id}/returns",
            PAYMENTS,
            json={"order_number": order_number, "amount": _amount(amount)},
        )

    # Payment Profiles API

    def create_customer_profile(self, billing: BillingAddress, email: str, token: str) -> str:
        body = {
            "billing": {
                "name": billing.full_name,
                "email_address": email,
                "phone_number": billing.phone_number,
                "address_line1": billing.address_line1,
                "address_line2": billing.address_line2,
                "city": billing.locality,
                "province": billing.administrative_area,
                "postal_code": billing.postal_code,
                "country": billing.country_code,
            },
            "token": {"name": billing.full_name, "code": token},
            "validate": True,
        }
        data = self._request("POST", "/v1/profiles", PROFILES, json=body)
        customer_code = data.get("customer_code")
        if not customer_code:
            raise RemoteProcessorError("Profile created without a customer code", code=data.get("code"))
        return customer_code

    def add_card_to_profile(self, customer_code: str, token: str, name: str) -> dict:
        body = {"token": {"name": name, "code": token}, "validate": True}
        return self._request("POST", f"/v1/profiles/{customer_code}/cards", PROFILES, json=body)

    def list_cards(self, customer_code: str) -> list:
        data = self._request("GET", f"/v1/profiles/{customer_code}/cards", PROFILES)
        return data.get("card") or []

    def delete_card(self, customer_code: str, card_id: str) -> dict:
        return self._request("DELETE", f"/v1/profiles/{customer_code}/cards/{card_id}", PROFILES)
