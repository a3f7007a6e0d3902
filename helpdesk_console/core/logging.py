# helpdesk_console/core/logging.py
import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # request lines from httpx are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
