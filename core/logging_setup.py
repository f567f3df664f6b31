import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO"):
    """Configure root logging once for CLI entry points"""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric, format=LOG_FORMAT, stream=sys.stdout, force=True)
    # supabase's HTTP stack logs every request at INFO
    logging.getLogger("httpx").setLevel(max(numeric, logging.WARNING))
