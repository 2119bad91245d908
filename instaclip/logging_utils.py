import copy
import logging
from logging.config import dictConfig
from typing import Any, Dict

from uvicorn.config import LOGGING_CONFIG as UVICORN_LOGGING_CONFIG


_NOISY_LOGGERS = {
    "httpx": logging.INFO,
    "httpcore": logging.INFO,
    "asyncio": logging.WARNING,
}


def configure_logging(debug: bool = False) -> None:
    """Configure application and uvicorn logging to share one stdout format."""
    log_level = "DEBUG" if debug else "INFO"

    logging_config: Dict[str, Any] = copy.deepcopy(UVICORN_LOGGING_CONFIG)

    logging_config["formatters"]["default"][
        "fmt"
    ] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    logging_config["formatters"]["default"]["use_colors"] = False
    logging_config["formatters"]["access"][
        "fmt"
    ] = '%(asctime)s | %(levelname)s | %(client_addr)s - "%(request_line)s" %(status_code)s'

    logging_config["handlers"]["default"]["stream"] = "ext://sys.stdout"
    logging_config["handlers"]["access"]["stream"] = "ext://sys.stdout"

    logging_config["loggers"]["uvicorn"]["level"] = log_level
    logging_config["loggers"]["uvicorn.error"]["level"] = log_level
    logging_config["loggers"]["uvicorn.access"]["level"] = "INFO"

    logging_config["root"] = {"handlers": ["default"], "level": log_level}

    dictConfig(logging_config)

    for logger_name, level in _NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)
