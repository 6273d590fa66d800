"""Read and on-demand generation handlers for the standup dashboard.

Handlers are framework-free: each returns (http_status, json_payload) so any
HTTP layer or the show_standups.py script can serve them.
"""

from standuplib.errors import AuthenticationError
from standuplib.errors import ConfigurationError
from standuplib.errors import RetryableSummarizationError
from standuplib.errors import StorageError
from standuplib.errors import UpstreamError

DEFAULT_API_HISTORY_LIMIT = 14
MAX_API_HISTORY_LIMIT = 90


#============================================
def parse_limit(limit_text) -> int:
	"""
	Parse a history limit query value, defaulting to 14 and clamping to 1-90.
	"""
	try:
		limit = int(str(limit_text).strip())
	except (TypeError, ValueError):
		return DEFAULT_API_HISTORY_LIMIT
	if limit <= 0:
		return DEFAULT_API_HISTORY_LIMIT
	return min(limit, MAX_API_HISTORY_LIMIT)


#============================================
def error_payload(error: Exception, message: str) -> dict:
	return {"error": message, "message": str(error)}


#============================================
def get_latest(store) -> tuple[int, dict]:
	"""
	GET /standups/latest
	"""
	try:
		record = store.read_latest()
	except StorageError as error:
		return 500, error_payload(error, "Failed to read standup storage")
	if record is None:
		return 404, {"error": "No standup has been generated yet."}
	return 200, record.to_dict()


#============================================
def get_history(store, limit_text=None) -> tuple[int, dict]:
	"""
	GET /standups/history?limit=N
	"""
	limit = parse_limit(limit_text)
	try:
		records = store.list(limit)
	except StorageError as error:
		return 500, error_payload(error, "Failed to read standup storage")
	items = [record.to_dict() for record in records]
	return 200, {"items": items, "total": len(items), "limit": limit}


#============================================
def generate_latest(runner, identity: str, hours: int, model_override: str | None = None) -> tuple[int, dict]:
	"""
	Run the standup on demand and classify failures by HTTP status class.
	"""
	try:
		result = runner.run_once(identity, hours, model_override=model_override)
	except ConfigurationError as error:
		return 400, error_payload(error, "Standup is misconfigured")
	except AuthenticationError as error:
		return 401, error_payload(error, "GitHub authentication failed")
	except RetryableSummarizationError as error:
		payload = error_payload(error, "Summarization is rate limited")
		payload["retryAfterSeconds"] = error.retry_after_seconds
		return 429, payload
	except UpstreamError as error:
		return 502, error_payload(error, "Upstream service request failed")
	except StorageError as error:
		payload = error_payload(error, "Standup generated but could not be saved")
		if error.run_result is not None:
			payload["standup"] = error.run_result.to_dict()
		payload["persisted"] = False
		return 500, payload
	except Exception as error:
		return 500, error_payload(error, "Internal server error")
	payload = result.to_dict()
	payload["persisted"] = True
	return 200, payload
