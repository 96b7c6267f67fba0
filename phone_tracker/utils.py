# phone_tracker/utils.py
"""Shared utilities such as logging and retry helpers."""
import os
import logging
import time
from functools import wraps
from dotenv import load_dotenv

load_dotenv()

def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("phone-tracker")


def call_with_retry(fn, *args, tries=3, delay=2, backoff=2, exceptions=Exception, logger=logger, **kwargs):
    """Call ``fn`` up to ``tries`` times, sleeping ``delay * backoff**n`` between attempts.

    The final attempt runs outside the try block so its error is the one
    the caller sees.
    """
    mtries, mdelay = tries, delay
    while mtries > 1:
        try:
            return fn(*args, **kwargs)
        except exceptions as e:
            logger.warning("Retryable error: %s, retrying in %s sec", e, mdelay)
            time.sleep(mdelay)
            mtries -= 1
            mdelay *= backoff
    return fn(*args, **kwargs)


def retry(exceptions, tries=3, delay=1, backoff=2, logger=logger):
    def deco_retry(f):
        @wraps(f)
        def f_retry(*args, **kwargs):
            return call_with_retry(
                f, *args, tries=tries, delay=delay, backoff=backoff,
                exceptions=exceptions, logger=logger, **kwargs
            )
        return f_retry
    return deco_retry
