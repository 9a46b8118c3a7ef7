"""Run the API server: python -m filevault"""
import uvicorn

from filevault.config import Settings
from filevault.logging_config import configure_logging
from filevault.main import create_app


def main() -> None:
    settings = Settings()
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        create_app(settings),
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
