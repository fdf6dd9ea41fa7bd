import base64
import json
from decimal import Decimal

import httpx
import pytest

from bambora_service.bambora_client import BamboraClient, ProfileCard, SingleUseToken
from bambora_service.config import MerchantCredentials
from bambora_service.exceptions import RemoteProcessorError
from bambora_service.schemas import BillingAddress

CREDENTIALS = MerchantCredentials(
    merchant_id="300200578",
    payments_api_key="PAYKEY",
    profiles_api_key="PROFKEY",
    hash_key="HASHKEY",
)


def make_client(handler):
    http = httpx.Client(base_url="https://api.test", transport=httpx.MockTransport(handler))
    return BamboraClient(CREDENTIALS, http_client=http)


def passcode(request):
    scheme, encoded = request.headers["Authorization"].split()
    assert scheme == "Passcode"
    return base64.b64decode(encoded).decode()


def test_charge_with_profile_card_uses_payments_key():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["passcode"] = passcode(request)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "10000001", "approved": "1"})

    result = make_client(handler).charge(
        "ORDER-1", Decimal("50.00"), ProfileCard("C0FFEE01", "1"), complete=False
    )

    assert result["id"] == "10000001"
    assert seen["path"] == "/v1/payments"
    assert seen["passcode"] == "300200578:PAYKEY"
    assert seen["body"] == {
        "order_number": "ORDER-1",
        "amount": 50.0,
        "payment_method": "payment_profile",
        "payment_profile": {"customer_code": "C0FFEE01", "card_id": "1", "complete": False},
    }


def test_charge_with_single_use_token():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "10000002"})

    make_client(handler).charge("ORDER-2", Decimal("12.34"), SingleUseToken("tok_abc", "Ada Lovelace"))

    assert seen["body"]["payment_method"] == "token"
    assert seen["body"]["token"] == {"code": "tok_abc", "name": "Ada Lovelace", "complete": True}


def test_single_use_token_repr_hides_token():
    assert "tok_abc" not in repr(SingleUseToken("tok_abc"))


@pytest.mark.parametrize("call, path", [
    (lambda c: c.complete_authorization("1001", Decimal("30.00")), "/v1/payments/1001/completions"),
    (lambda c: c.void_authorization("1001", Decimal("30.00")), "/v1/payments/1001/void"),
    (lambda c: c.refund("1001", Decimal("30.00"), "ORDER-1"), "/v1/payments/1001/returns"),
])
def test_payment_follow_ups(call, path):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["passcode"] = passcode(request)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "1002"})

    call(make_client(handler))

    assert seen["path"] == path
    assert seen["passcode"] == "300200578:PAYKEY"
    assert seen["body"]["amount"] == 30.0


def test_create_customer_profile_uses_profiles_key():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["passcode"] = passcode(request)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"code": 1, "message": "Operation Successful", "customer_code": "C0FFEE01"})

    billing = BillingAddress(
        given_name="Ada", family_name="Lovelace", address_line1="1 Main St",
        locality="Victoria", administrative_area="BC", postal_code="V8V 1A1", country_code="CA",
    )
    code = make_client(handler).create_customer_profile(billing, "ada@example.com", "tok_abc")

    assert code == "C0FFEE01"
    assert seen["path"] == "/v1/profiles"
    assert seen["passcode"] == "300200578:PROFKEY"
    assert seen["body"]["token"] == {"name": "Ada Lovelace", "code": "tok_abc"}
    assert seen["body"]["billing"]["email_address"] == "ada@example.com"
    assert seen["body"]["billing"]["province"] == "BC"
    assert seen["body"]["validate"] is True


def test_list_cards_returns_card_list():
    cards = [{"card_id": "1", "card_type": "VI"}, {"card_id": "2", "card_type": "MC"}]

    def handler(request):
        assert request.method == "GET"
        assert request.url.path == "/v1/profiles/C0FFEE01/cards"
        return httpx.Response(200, json={"code": 1, "card": cards})

    assert make_client(handler).list_cards("C0FFEE01") == cards


def test_delete_card():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        return httpx.Response(200, json={"code": 1})

    make_client(handler).delete_card("C0FFEE01", "2")

    assert seen == {"method": "DELETE", "path": "/v1/profiles/C0FFEE01/cards/2"}


def test_declined_response_raises_remote_error():
    def handler(request):
        return httpx.Response(402, json={"code": 7, "category": 1, "message": "DECLINE"})

    with pytest.raises(RemoteProcessorError) as exc:
        make_client(handler).charge("ORDER-1", Decimal("5.00"), SingleUseToken("tok"))

    assert exc.value.message == "DECLINE"
    assert exc.value.code == 7
    assert exc.value.status_code == 402


def test_transport_error_raises_remote_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(RemoteProcessorError):
        make_client(handler).list_cards("C0FFEE01")


def test_each_call_is_made_exactly_once():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={"message": "Server error"})

    with pytest.raises(RemoteProcessorError):
        make_client(handler).refund("1001", Decimal("1.00"), "ORDER-1")

    assert len(calls) == 1


def test_api_key_for_rejects_unknown_category():
    assert CREDENTIALS.api_key_for("payments") == "PAYKEY"
    assert CREDENTIALS.api_key_for("profiles") == "PROFKEY"
    with pytest.raises(ValueError):
        CREDENTIALS.api_key_for("reports")
