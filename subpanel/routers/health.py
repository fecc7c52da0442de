from fastapi import APIRouter

from ..config import settings
from ..schemas import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok", app=settings.APP_NAME, version=settings.APP_VERSION)
