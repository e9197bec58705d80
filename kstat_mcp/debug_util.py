import os, logging, sys
from typing import Dict

ROOT_LOGGER_NAME = "kstat_mcp"
logger = logging.getLogger(ROOT_LOGGER_NAME)

_children: Dict[str, logging.Logger] = {}


def _ensure_logger():
    """Attach a basic StreamHandler to the package logger if none present.

    Done lazily so importing a parser never overrides the host application's
    logging configuration. Component loggers propagate up to this one.
    """
    if logger.handlers:
        return
    logger.setLevel(logging.INFO)
    h = logging.StreamHandler(stream=sys.stderr)
    h.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    logger.addHandler(h)


def get_logger(component: str) -> logging.Logger:
    """kstat_mcp.<component>, e.g. kstat_mcp.nfsd, so hosts can filter one parser."""
    child = _children.get(component)
    if child is None:
        child = _children[component] = logger.getChild(component)
    return child


def debug_enabled() -> bool:
    # read on every call so the flag can be flipped at runtime
    return os.environ.get('DEBUG_VERBOSE') == '1'


def dbg(component: str, msg: str, *args):
    """Emit a debug info line on the component logger when DEBUG_VERBOSE=1.

    Parsers report skipped lines, dropped blocks/LUNs and header fields that failed to
    decode through here. ``msg`` is %-formatted with ``args`` only when emitted.
    """
    if not debug_enabled():
        return
    _ensure_logger()
    get_logger(component).info(msg, *args)
