import json
import logging
import time
from datetime import datetime, timezone

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.middleware.request_id import get_request_id

logger = logging.getLogger(__name__)

# Devices poll these for connectivity, keep them out of the INFO stream
QUIET_PATHS = {"/health", "/internal/metrics"}
SLOW_REQUEST_SECONDS = 1.0


def _level_for(status_code: int, path: str) -> int:
	if status_code >= 500:
		return logging.ERROR
	if status_code >= 400:
		return logging.WARNING
	if path in QUIET_PATHS:
		return logging.DEBUG
	return logging.INFO


class LoggingMiddleware(BaseHTTPMiddleware):
	"""One JSON access line per request. Bodies are never read or logged."""

	async def dispatch(self, request: Request, call_next):
		started = time.perf_counter()
		response = await call_next(request)
		duration = time.perf_counter() - started

		path = request.url.path
		level = _level_for(response.status_code, path)
		if not logger.isEnabledFor(level):
			return response

		entry = {
			"timestamp": datetime.now(timezone.utc).isoformat(),
			"level": logging.getLevelName(level),
			"request_id": get_request_id(),
			"method": request.method,
			"path": path,
			"query_params": dict(request.query_params),
			"client_host": request.client.host if request.client else None,
			"user_agent": request.headers.get("user-agent"),
			"user_id": getattr(request.state, "user_id", None),
			"status_code": response.status_code,
			"duration_seconds": round(duration, 3),
		}
		logger.log(level, json.dumps(entry))

		if duration > SLOW_REQUEST_SECONDS:
			logger.warning(f"Slow request: {request.method} {path} took {duration:.2f}s")

		return response
