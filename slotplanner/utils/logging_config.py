import logging
import sys
from slotplanner.config.settings import get_settings

_HANDLER_NAME = "slotplanner-console"


def setup_logging():
    """Configure application-wide logging."""
    settings = get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Reloads (uvicorn --reload, repeated test imports) must not stack handlers
    if not any(h.get_name() == _HANDLER_NAME for h in root_logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.set_name(_HANDLER_NAME)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # Quiet down noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return root_logger
