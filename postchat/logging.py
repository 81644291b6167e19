import logging
import os
import sys

import structlog

from .config import ENV_LOG_LEVEL


def setup_logging(debug: bool = False, json: bool = False) -> None:
    """Configure the root logger and structlog.

    The level is taken from the ``POSTCHAT_LOG_LEVEL`` environment variable.
    Passing ``debug=True`` forces ``DEBUG`` regardless of the environment.
    """
    if debug:
        level = logging.DEBUG
    else:
        level_name = os.getenv(ENV_LOG_LEVEL, "INFO").upper()
        level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(name)s [%(levelname)s] %(message)s")
    )
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
