import logging


def get_security_logger() -> logging.Logger:
    logger = logging.getLogger("security")
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    handler = logging.StreamHandler()
    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )
    handler.setFormatter(fmt)
    logger.addHandler(handler)

    return logger


def short_id(subject_id: str) -> str:
    """Truncated subject id for log lines."""
    return f"{subject_id[:8]}..."


def log_security_event(event: str, **details) -> None:
    logger = get_security_logger()
    rendered = " ".join(f"{k}={v}" for k, v in details.items())
    logger.info(f"[SECURITY] {event}: {rendered}")
