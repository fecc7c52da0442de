"""Run the API server: ``python -m subpanel`` or the ``subpanel`` script."""
import uvicorn

from .config import settings


def main():
    uvicorn.run(
        "subpanel.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )


if __name__ == "__main__":
    main()
