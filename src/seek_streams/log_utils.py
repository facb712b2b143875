import logging

__all__ = ["log", "set_up_logging"]

log = logging.getLogger("seek_streams")  # Provided for ease of access in other modules

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] - %(message)s"


def set_up_logging(quiet: bool = True):
    """
    Initialise the log

    Args:
      quiet : Change this flag to True/False to turn off/on console logging
    """
    log.setLevel(logging.DEBUG)
    if not quiet and not any(getattr(h, "_seek_streams", False) for h in log.handlers):
        console = logging.StreamHandler()
        console.setLevel(logging.DEBUG)
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        console._seek_streams = True  # mark so repeat calls add no duplicate
        log.addHandler(console)
