from typing import Any

from pydantic import BaseModel, Field


# ------------------------------------------------------
# CHECKOUT
# ------------------------------------------------------

class CheckoutRequest(BaseModel):
    trade_no: str = Field(..., min_length=1, max_length=36)
    # Payment channel id
    method: int = Field(..., ge=1)


class CheckoutResponse(BaseModel):
    # -1 free order, 0 QR code, 1 redirect, 2 client secret
    type: int
    data: Any = None


# ------------------------------------------------------
# HEALTH
# ------------------------------------------------------

class HealthResponse(BaseModel):
    status: str
    app: str
    version: str
