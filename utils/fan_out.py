import logging
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)


def bounded_map(func, items, concurrency=5):
    """Apply ``func`` to every item with at most ``concurrency`` calls in flight.

    Results come back in input order. The first exception raised by a call is
    re-raised once every submitted call has settled, so no worker is left
    running after the caller unwinds.
    """
    items = list(items)
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    if not items:
        return []
    if concurrency == 1 or len(items) == 1:
        return [func(item) for item in items]

    workers = min(concurrency, len(items))
    logger.debug(f"Fanning out {len(items)} tasks over {workers} workers")
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(func, item) for item in items]

    # leaving the with-block waits for every future
    results = []
    for future in futures:
        results.append(future.result())
    return results
