import time
import functools
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Timer:
    """
    Wall-clock timer for pricing and calibration runs.

    Used as a context manager; ``elapsed`` is set when the block exits,
    whether or not it raised.
    """

    def __init__(self, name: str = "operation", log_level: int = logging.INFO):
        self.name = name
        self.log_level = log_level
        self._started: Optional[float] = None
        self.elapsed: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._started is not None

    def start(self) -> 'Timer':
        self._started = time.perf_counter()
        self.elapsed = None
        logger.log(self.log_level, f"Starting {self.name}")
        return self

    def stop(self, failed: bool = False) -> float:
        if self._started is None:
            raise RuntimeError(f"Timer '{self.name}' was not started")

        self.elapsed = time.perf_counter() - self._started
        self._started = None

        outcome = "aborted after" if failed else "finished in"
        logger.log(self.log_level, f"{self.name} {outcome} {self.elapsed:.3f}s")
        return self.elapsed

    def __enter__(self) -> 'Timer':
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop(failed=exc_type is not None)


def timeit(func: Callable = None, *, name: str = None, log_level: int = logging.INFO) -> Callable:
    """
    Log the wall-clock time of each call of the decorated function.

    Usable bare (``@timeit``) or with arguments (``@timeit(name="fit")``).
    """
    def decorator(f: Callable) -> Callable:
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            with Timer(name or f.__name__, log_level):
                return f(*args, **kwargs)
        return wrapper

    if func is None:
        return decorator
    return decorator(func)
