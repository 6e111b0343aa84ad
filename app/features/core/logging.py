from .config import get_settings
from .structured_logging import configure_logging


def setup_logging():
    """
    Configure logging for the application from settings.
    Uses structured logging with JSON format in production.
    """
    settings = get_settings()
    configure_logging(
        level=settings.LOG_LEVEL,
        format_type=settings.LOG_FORMAT,
        log_file=settings.LOG_FILE,
    )
