from .adapter import NotifyResult, PayAction, PaymentAdapter, PayResult
from .dispatcher import PSPDispatcher

__all__ = [
    "NotifyResult",
    "PayAction",
    "PayResult",
    "PaymentAdapter",
    "PSPDispatcher",
]
