"""Payment state machine for both checkout flows.

    new                 -> authorization | completed
    authorization       -> completed | authorization_voided
    completed           -> partially_refunded | refunded
    partially_refunded  -> partially_refunded | refunded

Local preconditions are checked before any remote call, so a rejected
transition never reaches Bambora.
"""

import logging
import time
from decimal import Decimal

from bambora_service.customers import CustomerIdentityResolver
from bambora_service.exceptions import (
    HardDecline,
    InvalidAmount,
    InvalidPaymentState,
    InvalidRequestException,
    PaymentGatewayException,
    RemoteProcessorError,
)
from bambora_service.money import Price, round_price
from bambora_service.payment_methods import resolve_charge_target

logger = logging.getLogger(__name__)

# 29 days, in seconds.
AUTHORIZATION_EXPIRATION_PERIOD = 2505600

PAYMENT_TRANSITIONS = {
    "new": {"authorization", "completed"},
    "authorization": {"completed", "authorization_voided"},
    "completed": {"partially_refunded", "refunded"},
    "partially_refunded": {"partially_refunded", "refunded"},
    "authorization_voided": set(),
    "refunded": set(),
}

SINGLE_USE_RETRY_MESSAGE = (
    "We encountered an error processing your payment method. We use a secure, "
    "single-use authorization that is temporary and it might have already "
    "expired. Please try adding your payment details again."
)


def assert_payment_state(payment, allowed):
    if payment.state not in allowed:
        raise InvalidPaymentState(
            f"The payment is in state \"{payment.state}\", expected one of: {', '.join(sorted(allowed))}."
        )


def assert_payment_transition(current, target):
    if target not in PAYMENT_TRANSITIONS.get(current, set()):
        raise InvalidPaymentState(f"Invalid payment transition: {current} -> {target}")


class PaymentLifecycleEngine:
    def __init__(self, db, client, resolver=None, clock=time.time):
        self.db = db
        self.client = client
        self.resolver = resolver or CustomerIdentityResolver(db, client)
        self.clock = clock

    def _now(self):
        return int(self.clock())

    def _transition(self, payment, target):
        assert_payment_transition(payment.state, target)
        logger.info("Payment %s: %s -> %s", payment.id, payment.state, target)
        payment.state = target

    def _save(self, payment):
        self.db.add(payment)
        self.db.commit()

    def authorize(self, payment, capture=True):
        """Charge the payment method, optionally leaving the charge uncaptured."""
        assert_payment_state(payment, {"new"})
        payment_method = payment.payment_method
        if payment_method is None:
            raise HardDecline("The payment has no payment method.")
        now = self._now()
        if payment_method.is_expired(now):
            raise HardDecline("The provided payment method has expired.")
        if not payment_method.reusable and payment_method.consumed_time is not None:
            raise HardDecline(
                "The single-use payment method was already charged.",
                user_message=SINGLE_USE_RETRY_MESSAGE,
            )

        target = resolve_charge_target(payment_method, self.resolver)
        amount = round_price(payment.amount)

        try:
            result = self.client.charge(payment.order_id, amount.number, target, complete=capture)
        except RemoteProcessorError as e:
            user_message = None
            if not payment_method.reusable:
                # A declined single-use token cannot be retried.
                payment_method.consumed_time = now
                self.db.add(payment_method)
                self.db.commit()
                user_message = SINGLE_USE_RETRY_MESSAGE
            raise HardDecline(
                f'Could not charge the payment method. Message: "{e.message}"',
                code=e.code,
                user_message=user_message,
            ) from e

        if capture:
            self._transition(payment, "completed")
        else:
            self._transition(payment, "authorization")
            payment.expires_time = now + AUTHORIZATION_EXPIRATION_PERIOD
        payment.set_remote_id(result["id"])
        payment.remote_state = str(result.get("approved", "1"))

        if not payment_method.reusable:
            payment_method.consumed_time = now
            self.db.add(payment_method)
        self._save(payment)
        return payment

    def capture(self, payment, amount: Price | None = None):
        """Settle an authorization, for its full amount unless given less."""
        assert_payment_state(payment, {"authorization"})
        amount = round_price(amount or payment.amount)
        self.assert_capture_amount(payment, amount)

        try:
            self.client.complete_authorization(payment.remote_id, amount.number)
        except RemoteProcessorError as e:
            raise PaymentGatewayException(
                f"Could not capture the payment. Message: {e.message}", code=e.code
            ) from e

        self._transition(payment, "completed")
        payment.amount = amount
        payment.expires_time = None
        self._save(payment)
        return payment

    def void(self, payment):
        assert_payment_state(payment, {"authorization"})

        try:
            self.client.void_authorization(payment.remote_id, round_price(payment.amount).number)
        except RemoteProcessorError as e:
            raise PaymentGatewayException(
                f"Could not void the payment. Message: {e.message}", code=e.code
            ) from e

        self._transition(payment, "authorization_voided")
        self._save(payment)
        return payment

    def refund(self, payment, amount: Price | None = None):
        """Return money from a completed payment; defaults to the remaining balance.

        The amount is checked first, so refunding a fully refunded payment
        reports InvalidAmount rather than a state error.
        """
        amount = round_price(amount or payment.balance)
        self.assert_refund_amount(payment, amount)
        assert_payment_state(payment, {"completed", "partially_refunded"})

        try:
            self.client.refund(payment.remote_id, amount.number, payment.order_id)
        except RemoteProcessorError as e:
            raise InvalidRequestException(
                f"Could not refund the payment. Message: {e.message}", code=e.code
            ) from e

        refunded = payment.refunded_amount.add(amount)
        if refunded.less_than(payment.amount):
            self._transition(payment, "partially_refunded")
        else:
            self._transition(payment, "refunded")
        payment.refunded_amount = refunded
        self._save(payment)
        return payment

    @staticmethod
    def assert_capture_amount(payment, amount):
        if amount.currency_code != payment.currency_code:
            raise InvalidAmount(f"Cannot capture {amount} against a {payment.currency_code} payment.")
        if amount.number <= Decimal("0"):
            raise InvalidAmount(f"Capture amount must be positive, got {amount}.")
        authorized = round_price(payment.amount)
        if amount.greater_than(authorized):
            raise InvalidAmount(f"Can't capture more than the authorized {authorized}.")

    @staticmethod
    def assert_refund_amount(payment, amount):
        if amount.currency_code != payment.currency_code:
            raise InvalidAmount(f"Cannot refund {amount} from a {payment.currency_code} payment.")
        if amount.number <= Decimal("0"):
            raise InvalidAmount(f"Refund amount must be positive, got {amount}.")
        balance = payment.balance
        if amount.greater_than(balance):
            raise InvalidAmount(f"Can't refund more than {balance}.")
