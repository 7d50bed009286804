# pocketminder/observability.py
import logging
import sys
import time

from starlette.middleware.base import BaseHTTPMiddleware

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Set up root logging once for the process (stdout, one format).
    Unknown level names fall back to INFO.
    """
    log_level = getattr(logging, (level or "INFO").upper(), None)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,  # replace any handler installed before us (uvicorn, tests)
    )
    return logging.getLogger("pm")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.perf_counter()

        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000

        # path params exist only after routing; absent on /healthz and /categorize
        user_id = request.scope.get("path_params", {}).get("user_id")
        logging.getLogger("pm.req").info(
            "%s %s -> %s in %.1fms user=%s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            user_id,
        )
        return response
