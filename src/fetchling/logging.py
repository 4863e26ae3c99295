import logging
import sys

import structlog


def setup_logging(level: int = logging.WARNING, *, colors: bool = True) -> None:
    """
    Route fetchling events through stdlib logging on stderr at ``level``.
    """
    logging.basicConfig(format="%(message)s", stream=sys.stderr)
    logging.getLogger(name="fetchling").setLevel(level=level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
