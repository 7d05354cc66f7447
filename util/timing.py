# util/timing.py
import time
from contextlib import contextmanager
from typing import Any, Iterator
import logging


@contextmanager
def timed(logger: logging.Logger, name: str, **kv: Any) -> Iterator[None]:
    """
    Usage:
      with timed(logger, "upload.transfer", bytes=1024):
          ...
    Emits one INFO on success: "<name>.done ms=<int> key=val ..."
    or one WARNING when the block raises: "<name>.failed ms=<int> key=val ..."
    """
    t0 = time.perf_counter()
    failed = False
    try:
        yield
    except BaseException:
        failed = True
        raise
    finally:
        dt_ms = int((time.perf_counter() - t0) * 1000)
        suffix = "".join(f" {k}={v}" for k, v in kv.items())
        if failed:
            logger.warning("%s.failed ms=%d%s", name, dt_ms, suffix)
        else:
            logger.info("%s.done ms=%d%s", name, dt_ms, suffix)
