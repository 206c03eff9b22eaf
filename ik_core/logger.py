import logging, json, sys, time, os


def get_logger(name="ik", level=None, to_file=None):
    """Structured JSON logger shared by all ik_core components.

    ``level`` falls back to ``IK_LOG_LEVEL`` and ``to_file`` to ``IK_LOG_FILE``.
    Callers must never pass seeds, secrets or CEKs into log messages.
    """
    logger = logging.getLogger(name)
    if level is None:
        level = os.getenv("IK_LOG_LEVEL", "INFO").upper()
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            fmt=json.dumps({
                "ts": "%(asctime)s",
                "level": "%(levelname)s",
                "name": "%(name)s",
                "msg": "%(message)s"
            }),
            datefmt="%Y-%m-%dT%H:%M:%SZ",
        )
        formatter.converter = time.gmtime  # UTC timestamps
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        to_file = to_file or os.getenv("IK_LOG_FILE")
        if to_file:
            os.makedirs(os.path.dirname(to_file) or ".", exist_ok=True)
            file_handler = logging.FileHandler(to_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
