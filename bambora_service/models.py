import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from bambora_service.database import Base
from bambora_service.money import Price


def _uuid():
    return str(uuid.uuid4())


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String, primary_key=True, default=_uuid)
    email = Column(String)
    is_guest = Column(Boolean, default=False, nullable=False)
    remote_customer_id = Column(String, nullable=True)     # Bambora profile customer_code

    def __init__(self, **kwargs):
        kwargs.setdefault("is_guest", False)
        super().__init__(**kwargs)

    @property
    def is_authenticated(self):
        return not self.is_guest


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True)
    email = Column(String)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=True)
    total_number = Column(Numeric(19, 6), nullable=False)
    currency_code = Column(String(3), nullable=False)

    customer = relationship("Customer")

    @property
    def total_price(self):
        return Price(Decimal(self.total_number), self.currency_code)


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id = Column(String, primary_key=True, default=_uuid)
    owner_id = Column(String, ForeignKey("customers.id"), nullable=True)   # null: anonymous
    remote_id = Column(String)              # Bambora card_id, or the single-use token
    billing_name = Column(String)
    card_type = Column(String)
    card_number = Column(String(4))
    card_exp_month = Column(Integer)
    card_exp_year = Column(Integer)
    expires_time = Column(Integer, nullable=True)
    reusable = Column(Boolean, default=True, nullable=False)
    consumed_time = Column(Integer, nullable=True)

    owner = relationship("Customer")

    def __init__(self, **kwargs):
        kwargs.setdefault("reusable", True)
        super().__init__(**kwargs)

    def is_expired(self, now):
        return self.expires_time is not None and self.expires_time <= now


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=_uuid)
    order_id = Column(String, index=True, nullable=False)
    payment_method_id = Column(String, ForeignKey("payment_methods.id"), nullable=True)
    state = Column(String, default="new", nullable=False)
    remote_id = Column(String, nullable=True)             # Bambora transaction id
    remote_state = Column(String, nullable=True)
    amount_number = Column(Numeric(19, 6), nullable=False)
    currency_code = Column(String(3), nullable=False)
    refunded_number = Column(Numeric(19, 6), default=Decimal("0"), nullable=False)
    expires_time = Column(Integer, nullable=True)

    payment_method = relationship("PaymentMethod")

    def __init__(self, **kwargs):
        kwargs.setdefault("state", "new")
        kwargs.setdefault("refunded_number", Decimal("0"))
        super().__init__(**kwargs)

    @property
    def amount(self):
        return Price(Decimal(self.amount_number), self.currency_code)

    @amount.setter
    def amount(self, price):
        self.amount_number = price.number
        self.currency_code = price.currency_code

    @property
    def refunded_amount(self):
        return Price(Decimal(self.refunded_number or 0), self.currency_code)

    @refunded_amount.setter
    def refunded_amount(self, price):
        self.refunded_number = price.number

    @property
    def balance(self):
        return self.amount.subtract(self.refunded_amount)

    def set_remote_id(self, remote_id):
        if self.remote_id is not None and self.remote_id != str(remote_id):
            raise ValueError(f"Payment {self.id} already has remote id {self.remote_id}")
        self.remote_id = str(remote_id)
