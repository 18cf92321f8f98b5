"""
Run the payroll agent API with uvicorn
"""

import logging

import uvicorn

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # Driver chatter drowns out request logs at INFO
    for noisy in ("pymongo", "httpx", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def main():
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info(
        f"🚀 Payroll agent API on {settings.api_host}:{settings.api_port} "
        f"(model={settings.google_model}, env={settings.env})"
    )

    uvicorn.run(
        "src.api.server:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
