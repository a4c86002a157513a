import logging
from typing import Optional

from gst_recon.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    level_name = (level or settings.LOG_LEVEL).upper()
    if not isinstance(logging.getLevelName(level_name), int):
        logging.getLogger(__name__).warning(f"Invalid LOG_LEVEL: {level_name}. Defaulting to INFO.")
        level_name = "INFO"
    logging.basicConfig(level=level_name, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
