import logging
import os
import sys

logger = logging.getLogger("mstat")


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach a stderr handler to the ``mstat`` logger if none is present.

    Library modules only create loggers; the command line tools call this
    once at startup so importing mstat never changes host logging setup.
    MSTAT_DEBUG=1 forces DEBUG output.
    """
    if os.environ.get("MSTAT_DEBUG") == "1":
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logger.setLevel(level)
    if logger.handlers:
        return logger
    h = logging.StreamHandler(stream=sys.stderr)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    h.setFormatter(fmt)
    logger.addHandler(h)
    return logger
