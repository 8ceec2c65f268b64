import logging

from . import options

LOGLEVEL = dict(
    debug=logging.DEBUG,
    info=logging.INFO,
    warn=logging.WARNING,
    warning=logging.WARNING,
    error=logging.ERROR,
    critical=logging.CRITICAL,
)

_CONSOLE_FORMATTER = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
_CONSOLE_HANDLER = None

# Package logger.  Nothing is printed until an application attaches a handler,
# either its own or the console handler from setup_console_logging.
logger = logging.getLogger("lsqeval")
logger.addHandler(logging.NullHandler())


def setup_console_logging(level=None):
    """
    Send package log messages at *level* or above to the console.

    *level* is a name from LOGLEVEL, defaulting to options.LOG_LEVEL.
    Calling again adjusts the level of the existing handler.
    """
    global _CONSOLE_HANDLER
    if level is None:
        level = options.LOG_LEVEL
    if level not in LOGLEVEL:
        raise ValueError("unknown log level %r: use %s" % (level, "|".join(LOGLEVEL)))
    if _CONSOLE_HANDLER is None:
        _CONSOLE_HANDLER = logging.StreamHandler()
        _CONSOLE_HANDLER.setFormatter(_CONSOLE_FORMATTER)
        logger.addHandler(_CONSOLE_HANDLER)
    _CONSOLE_HANDLER.setLevel(LOGLEVEL[level])
    logger.setLevel(LOGLEVEL[level])
    return _CONSOLE_HANDLER


def test_setup_console_logging():
    handler = setup_console_logging("debug")
    try:
        assert handler in logger.handlers
        assert handler.level == logging.DEBUG
        assert setup_console_logging("error") is handler
        assert handler.level == logging.ERROR
        try:
            setup_console_logging("loud")
        except ValueError:
            pass
        else:
            raise AssertionError("unknown level accepted")
    finally:
        logger.removeHandler(handler)
        globals()["_CONSOLE_HANDLER"] = None
        logger.setLevel(logging.NOTSET)
