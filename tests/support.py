"""Shared fixtures: in-memory database, signed Stripe payloads, seed rows."""
import hashlib
import hmac
import json
import time

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from subpanel.db import Base
from subpanel.models import Order, OrderStatus, Payment

WEBHOOK_SECRET = "whsec_test_secret"


def make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def stripe_signature(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test") -> str:
    return json.dumps({"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}})


def intent_succeeded(trade_no: str, intent_id: str = "pi_test", metadata_key: str = "out_trade_no") -> str:
    return stripe_event("payment_intent.succeeded", {
        "id": intent_id,
        "object": "payment_intent",
        "status": "succeeded",
        "amount": 1400,
        "currency": "usd",
        "metadata": {"user_id": "7", metadata_key: trade_no},
    })


def notify_params(payload: str, secret: str = WEBHOOK_SECRET) -> dict:
    return {
        "raw_body": payload.encode("utf-8"),
        "headers": {"stripe-signature": stripe_signature(payload, secret)},
    }


def stripe_config(**overrides) -> dict:
    config = {
        "currency": "USD",
        "stripe_sk_live": "sk_test_123",
        "stripe_pk_live": "pk_test_123",
        "stripe_webhook_key": WEBHOOK_SECRET,
        "description": "Subscription",
        "payment_methods": "card",
        "auto_currency_convert": "0",
    }
    config.update(overrides)
    return config


def add_channel(db, uuid="chan0001", payment="Stripe", enable=True, config=None, **kwargs) -> Payment:
    channel = Payment(
        uuid=uuid,
        payment=payment,
        name=kwargs.pop("name", "Stripe Cards"),
        config=stripe_config() if config is None else config,
        enable=enable,
        **kwargs,
    )
    db.add(channel)
    db.commit()
    db.refresh(channel)
    return channel


def add_order(db, trade_no="202610170001", total_amount=1000, status=OrderStatus.PENDING.value, **kwargs) -> Order:
    order = Order(
        user_id=kwargs.pop("user_id", 7),
        trade_no=trade_no,
        total_amount=total_amount,
        status=status,
        **kwargs,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


class FixedRates:
    """Exchange service stand-in with a static rate table."""

    def __init__(self, rates=None):
        self.rates = rates or {}
        self.calls = []

    def get_rate(self, from_currency, to_currency):
        self.calls.append((from_currency.lower(), to_currency.lower()))
        return self.rates[(from_currency.lower(), to_currency.lower())]
