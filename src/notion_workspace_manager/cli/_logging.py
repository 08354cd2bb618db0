import logging
import sys

_CACHE_LOGGER = "notion_workspace_manager.cache"
_HTTP_LOGGERS = ("httpx", "httpcore")


def configure_logging(*, verbose: bool = False, cache_debug: bool = False) -> None:
    """Send log records to stderr so stdout carries only command results.

    ``verbose`` turns on DEBUG everywhere, including request logs from httpx.
    ``cache_debug`` turns on DEBUG for the cache alone, which traces every
    hit, miss, bypass and invalidation without the HTTP noise.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s", datefmt="%H:%M:%S"))
    root.addHandler(handler)

    logging.getLogger(_CACHE_LOGGER).setLevel(logging.DEBUG if verbose or cache_debug else logging.NOTSET)
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if verbose else logging.WARNING)
