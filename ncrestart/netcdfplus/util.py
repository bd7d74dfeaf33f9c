from functools import wraps
from time import time as tt
import logging

logger = logging.getLogger(__name__)

enable_timing = True


def with_timing_logging(func):
    @wraps(func)
    def _wrapped(*args, **kwargs):
        if not enable_timing:
            return func(*args, **kwargs)

        t1 = tt()
        result = func(*args, **kwargs)
        t2 = tt()
        logger.debug('Ran %s in time %f', func.__name__, t2 - t1)
        return result

    return _wrapped
