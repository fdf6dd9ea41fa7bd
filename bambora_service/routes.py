from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from bambora_service.auth import load_owner, verify_token
from bambora_service.bambora_client import BamboraClient
from bambora_service.checkout import RedirectRequestBuilder
from bambora_service.config import load_credentials
from bambora_service.database import SessionLocal, session_scope
from bambora_service.lifecycle import PaymentLifecycleEngine
from bambora_service.models import Order, Payment, PaymentMethod
from bambora_service.money import Price
from bambora_service.payment_methods import PaymentMethodReconciler
from bambora_service.schemas import BillingAddress, RedirectUrls

router = APIRouter()


def get_client():
    client = BamboraClient(load_credentials())
    try:
        yield client
    finally:
        client.close()


def get_redirect_builder():
    return RedirectRequestBuilder(load_credentials())


class PaymentMethodRequest(BaseModel):
    token: str = Field(min_length=1)
    billing_address: BillingAddress


class PaymentRequest(BaseModel):
    order_id: str
    payment_method_id: str
    capture: bool = True


class AmountRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0)


class RedirectRequest(BaseModel):
    billing_address: BillingAddress
    return_url: str
    exception_url: str
    cancel_url: str = ""
    capture: bool = True


def _payment_response(payment):
    return {
        "payment_id": payment.id,
        "order_id": payment.order_id,
        "state": payment.state,
        "remote_id": payment.remote_id,
        "amount": str(payment.amount.number),
        "refunded_amount": str(payment.refunded_amount.number),
        "currency": payment.currency_code,
        "expires_time": payment.expires_time,
    }


def _get_or_404(db, model, key, label):
    instance = db.get(model, key)
    if instance is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return instance


def _owner_id(owner):
    return owner.id if owner else None


def _get_owned_order(db, order_id, owner):
    order = _get_or_404(db, Order, order_id, "Order")
    if order.customer_id != _owner_id(owner):
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _get_owned_payment(db, payment_id, owner):
    payment = _get_or_404(db, Payment, payment_id, "Payment")
    order = db.get(Order, payment.order_id)
    # Anonymous tokens cannot prove they placed an order after checkout.
    if owner is None or order is None or order.customer_id != owner.id:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


def _existing_payment(db, order_id):
    return (
        db.query(Payment)
        .filter(Payment.order_id == order_id, Payment.state != "new")
        .first()
    )


def _requested_amount(request, payment):
    if request is None or request.amount is None:
        return None
    return Price(request.amount, payment.currency_code)


@router.post("/payment-methods")
def create_payment_method_api(
    request: PaymentMethodRequest,
    claims=Depends(verify_token),
    client=Depends(get_client),
):
    with session_scope(SessionLocal) as db:
        owner = load_owner(db, claims)
        payment_method = PaymentMethodReconciler(db, client).attach_card(
            PaymentMethod(), request.token, request.billing_address, owner
        )
        return {
            "payment_method_id": payment_method.id,
            "card_type": payment_method.card_type,
            "card_number": payment_method.card_number,
            "reusable": payment_method.reusable,
            "expires_time": payment_method.expires_time,
        }


@router.delete("/payment-methods/{payment_method_id}")
def delete_payment_method_api(
    payment_method_id: str,
    claims=Depends(verify_token),
    client=Depends(get_client),
):
    with session_scope(SessionLocal) as db:
        owner = load_owner(db, claims)
        payment_method = _get_or_404(db, PaymentMethod, payment_method_id, "Payment method")
        # Anonymous methods are single-use and belong to no one who can be identified later.
        if owner is None or payment_method.owner_id != owner.id:
            raise HTTPException(status_code=404, detail="Payment method not found")

        PaymentMethodReconciler(db, client).detach_card(payment_method, owner)
        return {"status": "deleted"}


@router.post("/payments")
def create_payment_api(
    request: PaymentRequest,
    claims=Depends(verify_token),
    client=Depends(get_client),
):
    with session_scope(SessionLocal) as db:
        owner = load_owner(db, claims)
        order = _get_owned_order(db, request.order_id, owner)

        existing = _existing_payment(db, order.id)
        if existing:
            return _payment_response(existing)

        payment_method = _get_or_404(db, PaymentMethod, request.payment_method_id, "Payment method")
        if payment_method.owner_id != _owner_id(owner):
            raise HTTPException(status_code=404, detail="Payment method not found")

        payment = Payment(order_id=order.id, payment_method=payment_method)
        payment.amount = order.total_price
        PaymentLifecycleEngine(db, client).authorize(payment, capture=request.capture)
        return _payment_response(payment)


@router.post("/payments/{payment_id}/capture")
def capture_payment_api(
    payment_id: str,
    request: AmountRequest | None = None,
    claims=Depends(verify_token),
    client=Depends(get_client),
):
    with session_scope(SessionLocal) as db:
        payment = _get_owned_payment(db, payment_id, load_owner(db, claims))
        PaymentLifecycleEngine(db, client).capture(payment, _requested_amount(request, payment))
        return _payment_response(payment)


@router.post("/payments/{payment_id}/void")
def void_payment_api(
    payment_id: str,
    claims=Depends(verify_token),
    client=Depends(get_client),
):
    with session_scope(SessionLocal) as db:
        payment = _get_owned_payment(db, payment_id, load_owner(db, claims))
        PaymentLifecycleEngine(db, client).void(payment)
        return _payment_response(payment)


@router.post("/payments/{payment_id}/refund")
def refund_payment_api(
    payment_id: str,
    request: AmountRequest | None = None,
    claims=Depends(verify_token),
    client=Depends(get_client),
):
    with session_scope(SessionLocal) as db:
        payment = _get_owned_payment(db, payment_id, load_owner(db, claims))
        PaymentLifecycleEngine(db, client).refund(payment, _requested_amount(request, payment))
        return _payment_response(payment)


@router.post("/checkout/{order_id}/redirect")
def checkout_redirect_api(
    order_id: str,
    request: RedirectRequest,
    claims=Depends(verify_token),
    builder=Depends(get_redirect_builder),
):
    with session_scope(SessionLocal) as db:
        order = _get_owned_order(db, order_id, load_owner(db, claims))

    payment = Payment(order_id=order.id)
    payment.amount = order.total_price
    urls = RedirectUrls(
        return_url=request.return_url,
        exception_url=request.exception_url,
        cancel_url=request.cancel_url,
    )
    data = builder.build_signed_request(
        payment, request.billing_address, order.email, urls, capture=request.capture
    )
    return {"redirect_url": builder.redirect_location(data), "data": data}


# Reached by the shopper's browser coming back from Bambora, so no bearer token.
@router.get("/checkout/{order_id}/return")
def checkout_return_api(
    order_id: str,
    request: Request,
    builder=Depends(get_redirect_builder),
):
    with session_scope(SessionLocal) as db:
        order = _get_or_404(db, Order, order_id, "Order")

        # The browser may reload the return page; record the payment once.
        existing = _existing_payment(db, order.id)
        if existing:
            return _payment_response(existing)

        payment = builder.handle_return(order.id, dict(request.query_params), order.total_price)
        db.add(payment)
        db.commit()
        return _payment_response(payment)
