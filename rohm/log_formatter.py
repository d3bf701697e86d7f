##############################################################################
# Copyright (c) Rohm Project developers. See top-level LICENSE and COPYRIGHT
# files for dates and other details. No copyright assignment is required to
# contribute to Rohm.
##############################################################################

"""This module handles setting up logging for Rohm."""

import logging
import sys

import coloredlogs


FORMATS = {
    "DEFAULT": "[%(asctime)s: %(levelname)s] %(message)s",
    "DEBUG": "[%(asctime)s: %(levelname)s] [%(module)s: %(lineno)d] %(message)s",
}


class RohmStreamHandler(logging.StreamHandler):
    """The stdout handler `setup_logging` attaches; replaced, never stacked, on later calls."""

    def __init__(self):
        super().__init__(sys.stdout)


def setup_logging(logger: logging.Logger, log_level: str = "INFO", colors: bool = True):
    """
    Setup and configure Python logging.

    Calling this again (e.g. once per backend built from the configuration)
    swaps the handler installed by the previous call.

    Args:
        logger: A logging.Logger object.
        log_level: Logger level name, in any case.
        colors: If True use colored logs.
    """
    log_level = log_level.upper()
    fmt = FORMATS["DEBUG"] if log_level == "DEBUG" else FORMATS["DEFAULT"]

    for old_handler in [h for h in logger.handlers if isinstance(h, RohmStreamHandler)]:
        logger.removeHandler(old_handler)

    handler = RohmStreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)

    logger.setLevel(log_level)
    logger.propagate = False

    if colors is True:
        coloredlogs.install(level=log_level, logger=logger, fmt=fmt)
