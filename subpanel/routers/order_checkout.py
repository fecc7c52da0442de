from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..exceptions import ApiException
from ..logging_config import get_logger
from ..models import OrderStatus, Payment
from ..schemas import CheckoutRequest, CheckoutResponse
from ..services.order_service import OrderService
from ..services.payment_service import PaymentService

logger = get_logger(__name__)

router = APIRouter()

FREE_ORDER = -1


@router.post("/checkout", response_model=CheckoutResponse)
def checkout(body: CheckoutRequest, db: Session = Depends(get_db)):
    orders = OrderService(db)
    order = orders.find_order_by_trade_no(body.trade_no)
    if order is None or order.status != OrderStatus.PENDING.value:
        raise ApiException("Order does not exist or has been paid", status_code=400)

    if order.total_amount <= 0:
        if not orders.mark_paid(order, None):
            raise ApiException("Order does not exist or has been paid", status_code=400)
        logger.info("checkout_free_order_paid", trade_no=order.trade_no)
        return CheckoutResponse(type=FREE_ORDER, data=True)

    payment = db.query(Payment).filter(Payment.id == body.method, Payment.enable.is_(True)).first()
    if payment is None:
        raise ApiException("Payment method is not available", status_code=400)

    order.payment_id = payment.id
    db.commit()

    service = PaymentService(payment.payment, id=payment.id, db=db)
    result = service.pay({
        "trade_no": order.trade_no,
        "total_amount": order.total_amount,
        "user_id": order.user_id,
        "return_url": order.return_url or f"{settings.APP_URL.rstrip('/')}/#/order/{order.trade_no}",
    })
    return CheckoutResponse(**result.to_dict())
