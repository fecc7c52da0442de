"""
Order settlement: find an order by trade number and mark it paid exactly once.
"""
import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..logging_config import get_logger
from ..models import Order, OrderStatus

logger = get_logger(__name__)


class SettlementOutcome(str, enum.Enum):
    SETTLED = "settled"
    ALREADY_PAID = "already_paid"
    NOT_FOUND = "not_found"
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self in (SettlementOutcome.SETTLED, SettlementOutcome.ALREADY_PAID)


class OrderService:
    def __init__(self, db: Session):
        self.db = db

    def find_order_by_trade_no(self, trade_no: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.trade_no == trade_no).first()

    def mark_paid(self, order: Order, callback_no: Optional[str]) -> bool:
        """
        Move a pending order to paid.

        The status check and the write are one conditional UPDATE, so a
        concurrent duplicate notification cannot settle the order twice.
        Returns False when the order was no longer pending.
        """
        result = self.db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == OrderStatus.PENDING.value)
            .values(
                status=OrderStatus.PAID.value,
                callback_no=callback_no,
                paid_at=datetime.now(timezone.utc),
            )
        )
        if result.rowcount != 1:
            self.db.rollback()
            return False
        self.db.commit()
        self.db.refresh(order)
        return True

    def settle(self, trade_no: str, callback_no: Optional[str]) -> SettlementOutcome:
        logger.info("settle_order_started", trade_no=trade_no, callback_no=callback_no)
        order = self.find_order_by_trade_no(trade_no)
        if order is None:
            logger.error("settle_order_not_found", trade_no=trade_no)
            return SettlementOutcome.NOT_FOUND

        if order.status != OrderStatus.PENDING.value:
            logger.info("settle_order_already_processed", trade_no=trade_no, status=order.status)
            return SettlementOutcome.ALREADY_PAID

        if self.mark_paid(order, callback_no):
            logger.info("settle_order_paid", trade_no=trade_no, order_id=order.id)
            return SettlementOutcome.SETTLED

        # Lost a race with another delivery of the same event
        self.db.refresh(order)
        if order.status != OrderStatus.PENDING.value:
            logger.info("settle_order_already_processed", trade_no=trade_no, status=order.status)
            return SettlementOutcome.ALREADY_PAID

        logger.error("settle_order_failed", trade_no=trade_no)
        return SettlementOutcome.FAILED
