"""
Stripe webhook events decoded into explicit shapes.

Only the fields the settlement flow reads are kept. New event types are
supported by registering a decoder with ``@event_decoder("<type>")``.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union


class MalformedEventError(ValueError):
    """Payload is valid JSON but not a Stripe event."""


@dataclass(frozen=True)
class PaymentIntentSucceeded:
    event_id: str
    intent_id: str
    status: str
    metadata: Dict[str, str] = field(default_factory=dict)
    amount: Optional[int] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class PaymentIntentFailed:
    event_id: str
    intent_id: str
    error_code: Optional[str] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class PaymentIntentPending:
    """Non-terminal steps (redirect pending, method attached)."""
    event_id: str
    object_type: str
    object_id: Optional[str] = None


@dataclass(frozen=True)
class CheckoutSessionCompleted:
    event_id: str
    session_id: str
    client_reference_id: Optional[str]
    payment_intent: Optional[str]
    payment_status: Optional[str]
    amount_total: Optional[int] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class CheckoutSessionAsyncPaymentSucceeded(CheckoutSessionCompleted):
    pass


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: str
    type: str


StripeEvent = Union[
    PaymentIntentSucceeded,
    PaymentIntentFailed,
    PaymentIntentPending,
    CheckoutSessionCompleted,
    CheckoutSessionAsyncPaymentSucceeded,
    UnhandledEvent,
]

Decoder = Callable[[str, Dict[str, Any]], StripeEvent]

_decoders: Dict[str, Decoder] = {}


def event_decoder(*event_types: str):
    """Register a decoder for one or more Stripe event types."""
    def register(func: Decoder) -> Decoder:
        for event_type in event_types:
            _decoders[event_type] = func
        return func
    return register


def registered_event_types():
    return sorted(_decoders)


def decode_event(event: Dict[str, Any]) -> StripeEvent:
    """
    Turn a verified Stripe event payload into one of the known shapes.

    Raises:
        MalformedEventError: missing ``type`` or ``data.object``.
    """
    if not isinstance(event, dict):
        raise MalformedEventError("event must be a JSON object")
    event_type = event.get("type")
    data = event.get("data")
    if not isinstance(event_type, str) or not isinstance(data, dict):
        raise MalformedEventError("event is missing type or data")
    obj = data.get("object")
    if not isinstance(obj, dict):
        raise MalformedEventError("event is missing data.object")

    event_id = str(event.get("id") or "")
    decoder = _decoders.get(event_type)
    if decoder is None:
        return UnhandledEvent(event_id=event_id, type=event_type)
    return decoder(event_id, obj)


def _metadata(obj: Dict[str, Any]) -> Dict[str, str]:
    metadata = obj.get("metadata") or {}
    if not isinstance(metadata, dict):
        return {}
    return {str(k): str(v) for k, v in metadata.items() if v not in (None, "")}


@event_decoder("payment_intent.succeeded")
def _payment_intent_succeeded(event_id: str, obj: Dict[str, Any]) -> PaymentIntentSucceeded:
    return PaymentIntentSucceeded(
        event_id=event_id,
        intent_id=str(obj.get("id") or ""),
        status=str(obj.get("status") or ""),
        metadata=_metadata(obj),
        amount=obj.get("amount"),
        currency=obj.get("currency"),
    )


@event_decoder("payment_intent.payment_failed")
def _payment_intent_failed(event_id: str, obj: Dict[str, Any]) -> PaymentIntentFailed:
    last_error = obj.get("last_payment_error") or {}
    return PaymentIntentFailed(
        event_id=event_id,
        intent_id=str(obj.get("id") or ""),
        error_code=last_error.get("decline_code") or last_error.get("code"),
        error_message=last_error.get("message"),
    )


@event_decoder("payment_intent.requires_action", "payment_method.attached")
def _pending(event_id: str, obj: Dict[str, Any]) -> PaymentIntentPending:
    return PaymentIntentPending(
        event_id=event_id,
        object_type=str(obj.get("object") or ""),
        object_id=obj.get("id"),
    )


def _session_fields(event_id: str, obj: Dict[str, Any]) -> Dict[str, Any]:
    return dict(
        event_id=event_id,
        session_id=str(obj.get("id") or ""),
        client_reference_id=obj.get("client_reference_id"),
        payment_intent=obj.get("payment_intent"),
        payment_status=obj.get("payment_status"),
        amount_total=obj.get("amount_total"),
        currency=obj.get("currency"),
    )


@event_decoder("checkout.session.completed")
def _checkout_session_completed(event_id: str, obj: Dict[str, Any]) -> CheckoutSessionCompleted:
    return CheckoutSessionCompleted(**_session_fields(event_id, obj))


@event_decoder("checkout.session.async_payment_succeeded")
def _checkout_session_async(event_id: str, obj: Dict[str, Any]) -> CheckoutSessionAsyncPaymentSucceeded:
    return CheckoutSessionAsyncPaymentSucceeded(**_session_fields(event_id, obj))
