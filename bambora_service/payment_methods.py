import calendar
import logging
from datetime import datetime, timezone

from bambora_service.bambora_client import ProfileCard, SingleUseToken
from bambora_service.customers import CustomerIdentityResolver
from bambora_service.exceptions import (
    HardDecline,
    InvalidRequestException,
    RemoteProcessorError,
    UnsupportedCardType,
)

logger = logging.getLogger(__name__)

CARD_TYPE_MAP = {
    "AM": "amex",
    "DI": "dinersclub",
    "JB": "jcb",
    "MC": "mastercard",
    "NN": "discover",
    "VI": "visa",
}


def map_card_type(card_type):
    """Map a Bambora card type code to a local card brand."""
    try:
        return CARD_TYPE_MAP[card_type]
    except KeyError:
        raise UnsupportedCardType(f'Unsupported credit card type "{card_type}".') from None


def most_recently_added_card(cards):
    """Return the card a preceding add/create call just stored.

    Bambora does not return the id of a newly added card. Its card list is
    ordered by creation, so the new card is the last entry.
    """
    if not cards:
        raise HardDecline("The payment profile has no cards.")
    return cards[-1]


def full_year(year):
    year = int(year)
    return year + 2000 if year < 100 else year


def card_expiration_timestamp(month, year):
    """Last second of the expiry month, UTC."""
    month, year = int(month), full_year(year)
    last_day = calendar.monthrange(year, month)[1]
    expires = datetime(year, month, last_day, 23, 59, 59, tzinfo=timezone.utc)
    return int(expires.timestamp())


def resolve_charge_target(payment_method, resolver):
    owner = payment_method.owner
    if owner is not None and owner.is_authenticated:
        profile_id = resolver.resolve(owner)
        if profile_id is None:
            raise HardDecline(f"Customer {owner.id} has no remote payment profile.")
        return ProfileCard(profile_id=profile_id, card_id=payment_method.remote_id)
    return SingleUseToken(token=payment_method.remote_id, name=payment_method.billing_name or "")


class PaymentMethodReconciler:
    """Turns Custom Checkout tokens into stored payment methods."""

    def __init__(self, db, client, resolver=None):
        self.db = db
        self.client = client
        self.resolver = resolver or CustomerIdentityResolver(db, client)

    def attach_card(self, payment_method, token, billing_address, owner):
        if not token:
            raise ValueError("A card token is required to create a payment method.")

        payment_method.owner = owner
        payment_method.billing_name = billing_address.full_name

        # There is no API to read card details back from a token, so for
        # anonymous shoppers the token itself becomes the remote id.
        if owner is None or not owner.is_authenticated:
            payment_method.remote_id = token
            payment_method.reusable = False
            self._save(payment_method)
            logger.info("Stored single-use payment method %s", payment_method.id)
            return payment_method

        profile_id = self.resolver.resolve(owner)
        if profile_id is None:
            profile_id = self.resolver.create_and_bind(owner, billing_address, token)
        else:
            try:
                self.client.add_card_to_profile(profile_id, token, billing_address.full_name)
            except RemoteProcessorError as e:
                raise HardDecline(f"Unable to verify the credit card: {e.message}", code=e.code) from e

        try:
            cards = self.client.list_cards(profile_id)
        except RemoteProcessorError as e:
            raise HardDecline(f"Unable to verify the credit card: {e.message}", code=e.code) from e

        card = most_recently_added_card(cards)
        payment_method.card_type = map_card_type(card.get("card_type"))
        payment_method.card_number = str(card.get("number", ""))[-4:]
        payment_method.card_exp_month = int(card["expiry_month"])
        payment_method.card_exp_year = full_year(card["expiry_year"])
        payment_method.expires_time = card_expiration_timestamp(card["expiry_month"], card["expiry_year"])
        payment_method.remote_id = str(card["card_id"])
        payment_method.reusable = True
        self._save(payment_method)
        logger.info("Stored %s card for customer %s", payment_method.card_type, owner.id)
        return payment_method

    def detach_card(self, payment_method, owner):
        profile_id = self.resolver.resolve(owner)
        # Without a profile there is no remote card to clean up.
        if profile_id is not None:
            try:
                self.client.delete_card(profile_id, payment_method.remote_id)
            except RemoteProcessorError as e:
                raise InvalidRequestException(
                    f"Could not delete the payment method. Message: {e.message}", code=e.code
                ) from e

        self.db.delete(payment_method)
        self.db.commit()
        logger.info("Deleted payment method %s", payment_method.id)

    def _save(self, payment_method):
        self.db.add(payment_method)
        self.db.commit()
