"""
Inbound payment notifications.

POST /api/v1/guest/payment/notify/{method}/{uuid}

The adapter verifies the request and reports which order was paid; the
order is then settled once and the operators are alerted.
"""
import json

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..exceptions import ApiException, error_envelope, fail
from ..logging_config import get_logger
from ..services import webhook_service
from ..services.order_service import OrderService, SettlementOutcome
from ..services.payment_service import PaymentService
from ..services.telegram_service import TelegramService, get_notifier, payment_received_message

logger = get_logger(__name__)

router = APIRouter()


def _payload_for_log(raw_body: bytes):
    try:
        return json.loads(raw_body)
    except ValueError:
        return {"raw": raw_body.decode("utf-8", errors="replace")}


def _handle(
    service: PaymentService,
    params: dict,
    db: Session,
    notifier: TelegramService,
    event_id,
):
    result = service.notify(params)
    if result is None:
        webhook_service.update_webhook_status(event_id, webhook_service.IGNORED, "verify error", db)
        return fail(422, "verify error")

    outcome = OrderService(db).settle(result.trade_no, result.callback_no)
    if not outcome.ok:
        webhook_service.update_webhook_status(event_id, webhook_service.FAILED, f"handle error: {outcome.value}", db)
        return fail(400, "handle error")

    if outcome is SettlementOutcome.SETTLED:
        order = OrderService(db).find_order_by_trade_no(result.trade_no)
        notifier.send_message_with_admin(payment_received_message(order, service.payment))

    webhook_service.update_webhook_status(event_id, webhook_service.PROCESSED, outcome.value, db)
    return PlainTextResponse(result.custom_result or "success")


def _process(method: str, uuid: str, params: dict, db: Session, notifier: TelegramService):
    """Log, verify, settle and alert. All database work for one notification, run off the event loop."""
    wh_event = webhook_service.log_webhook(method, params["headers"], _payload_for_log(params["raw_body"]), uuid, db)
    event_id = wh_event.id if wh_event else None

    try:
        service = PaymentService(method, uuid=uuid, db=db)
        return _handle(service, params, db, notifier, event_id)
    except ApiException as e:
        webhook_service.update_webhook_status(event_id, webhook_service.FAILED, e.message, db)
        raise
    except Exception as e:
        logger.exception("payment_notify_failed", method=method, uuid=uuid)
        webhook_service.update_webhook_status(event_id, webhook_service.FAILED, str(e), db)
        return JSONResponse(status_code=500, content=error_envelope(str(e), error=type(e).__name__))


@router.post("/notify/{method}/{uuid}")
async def notify(
    method: str,
    uuid: str,
    request: Request,
    db: Session = Depends(get_db),
    notifier: TelegramService = Depends(get_notifier),
):
    raw_body = await request.body()
    headers = dict(request.headers)
    params = dict(request.query_params)
    params.update({"raw_body": raw_body, "headers": headers})

    return await run_in_threadpool(_process, method, uuid, params, db, notifier)
