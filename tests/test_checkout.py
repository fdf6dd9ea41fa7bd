import hashlib
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest

from bambora_service.checkout import RedirectRequestBuilder
from bambora_service.config import MerchantCredentials
from bambora_service.exceptions import PaymentGatewayException
from bambora_service.models import Payment
from bambora_service.money import Price
from bambora_service.schemas import BillingAddress, RedirectUrls

CREDENTIALS = MerchantCredentials(merchant_id="300200578", hash_key="s3cr3t")
BILLING = BillingAddress(
    given_name="Ada",
    family_name="Lovelace",
    address_line1="1 Main St",
    address_line2="Suite 2",
    locality="Victoria",
    administrative_area="BC",
    postal_code="V8V 1A1",
    country_code="CA",
)
URLS = RedirectUrls(
    return_url="https://shop.test/checkout/ORDER-7/return",
    exception_url="https://shop.test/checkout/ORDER-7/declined",
)


@pytest.fixture
def builder():
    return RedirectRequestBuilder(CREDENTIALS, redirect_url="https://web.test/payment.asp")


def order_payment(amount="42.5"):
    payment = Payment(order_id="ORDER-7")
    payment.amount = Price(Decimal(amount), "CAD")
    return payment


def test_hash_value_covers_merchant_id_and_hash_key_only(builder):
    expected = hashlib.sha1(b"merchant_id=300200578s3cr3t").hexdigest()
    assert builder.hash_value() == expected


def test_build_signed_request(builder):
    data = builder.build_signed_request(order_payment(), BILLING, "ada@example.com", URLS, capture=True)

    assert data == {
        "merchant_id": "300200578",
        "hashValue": hashlib.sha1(b"merchant_id=300200578s3cr3t").hexdigest(),
        "trnAmount": "42.50",
        "trnOrderNumber": "ORDER-7",
        "trnType": "P",
        "trnCardOwner": "Ada Lovelace",
        "ordName": "Ada Lovelace",
        "ordEmailAddress": "ada@example.com",
        "ordAddress1": "1 Main St",
        "ordAddress2": "Suite 2",
        "ordCity": "Victoria",
        "ordProvince": "BC",
        "ordPostalCode": "V8V 1A1",
        "ordCountry": "CA",
        "approvedPage": "https://shop.test/checkout/ORDER-7/return",
        "declinedPage": "https://shop.test/checkout/ORDER-7/declined",
    }


def test_authorization_only_uses_pa(builder):
    data = builder.build_signed_request(order_payment(), BILLING, "ada@example.com", URLS, capture=False)
    assert data["trnType"] == "PA"


def test_redirect_location_is_get_request(builder):
    data = builder.build_signed_request(order_payment(), BILLING, "ada@example.com", URLS)

    location = urlparse(builder.redirect_location(data))

    assert location.netloc == "web.test"
    assert parse_qs(location.query)["trnOrderNumber"] == ["ORDER-7"]


def test_declined_return_raises(builder):
    params = {"trnApproved": "0", "messageText": "DECLINE", "messageID": "7", "trnId": "10000005"}

    with pytest.raises(PaymentGatewayException) as exc:
        builder.handle_return("ORDER-7", params, Price(Decimal("42.50"), "CAD"))

    assert exc.value.message == "DECLINE"
    assert exc.value.code == "7"


def test_return_without_approval_flag_is_declined(builder):
    with pytest.raises(PaymentGatewayException):
        builder.handle_return("ORDER-7", {"trnId": "12345"}, Price(Decimal("42.50"), "CAD"))


def test_approved_return_without_transaction_id_is_rejected(builder):
    with pytest.raises(PaymentGatewayException) as exc:
        builder.handle_return("ORDER-7", {"trnApproved": "1"}, Price(Decimal("42.50"), "CAD"))

    assert "transaction id" in exc.value.message


def test_approved_return_creates_completed_payment(builder):
    params = {"trnApproved": "1", "trnId": "12345", "messageText": "Approved"}

    payment = builder.handle_return("ORDER-7", params, Price(Decimal("42.50"), "CAD"))

    assert payment.state == "completed"
    assert payment.remote_id == "12345"
    assert payment.remote_state == "1"
    assert payment.order_id == "ORDER-7"
    assert payment.amount == Price(Decimal("42.50"), "CAD")
    assert payment.refunded_amount.is_zero()
