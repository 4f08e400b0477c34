# PlanCoach package init
import logging
import os


def _configure_logging() -> None:
    level_name = (os.getenv("PLANCOACH_LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logger = logging.getLogger("plancoach")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[PLANCOACH][%(levelname)s] %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)

    assistant_level_name = (os.getenv("PLANCOACH_ASSISTANT_LOG_LEVEL") or level_name).upper()
    assistant_level = getattr(logging, assistant_level_name, level)
    logging.getLogger("plancoach.assistant").setLevel(assistant_level)


_configure_logging()
