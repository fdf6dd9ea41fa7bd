"""Bambora Checkout (off-site, hosted payment page).

The shopper is redirected to Bambora with a GET request carrying the order
details; Bambora charges the card and sends the shopper back to one of our
URLs with the outcome in the query string.

Documentation: https://dev.na.bambora.com/docs/references/checkout/
"""

import hashlib
import logging
from urllib.parse import urlencode

from bambora_service import config
from bambora_service.exceptions import PaymentGatewayException
from bambora_service.models import Payment
from bambora_service.money import minor_units, round_price

logger = logging.getLogger(__name__)

PURCHASE = "P"
PRE_AUTHORIZATION = "PA"


class RedirectRequestBuilder:
    def __init__(self, credentials, redirect_url=None):
        self.credentials = credentials
        self.redirect_url = redirect_url or config.checkout_url()

    def hash_value(self):
        """Hash of the merchant id and hash key, as configured on Bambora."""
        return hashlib.sha1(
            f"merchant_id={self.credentials.merchant_id}{self.credentials.hash_key}".encode()
        ).hexdigest()

    def build_signed_request(self, payment, billing_address, email, urls, capture=True):
        amount = round_price(payment.amount)
        name = billing_address.full_name
        return {
            "merchant_id": self.credentials.merchant_id,
            "hashValue": self.hash_value(),
            "trnAmount": f"{amount.number:.{minor_units(amount.currency_code)}f}",
            "trnOrderNumber": payment.order_id,
            "trnType": PURCHASE if capture else PRE_AUTHORIZATION,
            "trnCardOwner": name,
            "ordName": name,
            "ordEmailAddress": email or "",
            "ordAddress1": billing_address.address_line1,
            "ordAddress2": billing_address.address_line2,
            "ordCity": billing_address.locality,
            "ordProvince": billing_address.administrative_area,
            "ordPostalCode": billing_address.postal_code,
            "ordCountry": billing_address.country_code,
            "approvedPage": urls.return_url,
            "declinedPage": urls.exception_url,
        }

    def redirect_location(self, payload):
        return f"{self.redirect_url}?{urlencode(payload)}"

    def handle_return(self, order_id, query_params, amount):
        """Turn the return callback into a completed payment.

        Bambora has already charged the card, so no remote call is made. The
        callback is trusted as received; its parameters are not signed.
        """
        approved = query_params.get("trnApproved")
        if approved in (None, "", "0", 0):
            logger.warning(
                "Off-site payment for order %s declined: %s",
                order_id, query_params.get("messageID"),
            )
            raise PaymentGatewayException(
                query_params.get("messageText") or "The payment was declined.",
                code=query_params.get("messageID"),
            )

        transaction_id = query_params.get("trnId")
        if not transaction_id:
            raise PaymentGatewayException(
                "The approved payment is missing its transaction id.",
                code=query_params.get("messageID"),
            )

        payment = Payment(
            order_id=order_id,
            state="completed",
            remote_id=str(transaction_id),
            remote_state=str(approved),
        )
        payment.amount = amount
        logger.info("Off-site payment for order %s approved", order_id)
        return payment
