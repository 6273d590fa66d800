from datetime import datetime
from datetime import timezone

import requests

from standuplib.errors import AuthenticationError
from standuplib.errors import GitHubRateLimitError
from standuplib.errors import UpstreamError

SEARCH_PER_PAGE = 50
# GitHub search never returns more than 1000 results for one query
SEARCH_RESULT_CAP = 1000


#============================================
class GitHubClient:
	"""
	Thin PyGithub wrapper for the pull-request search use-case.
	"""

	def __init__(self, token: str, log_fn=None, timeout: int = 30, per_page: int = SEARCH_PER_PAGE):
		self.token = (token or "").strip()
		self.log_fn = log_fn
		self.per_page = int(per_page)
		self.timeout = timeout
		try:
			from github import Auth
			from github import Github
			from github.GithubException import GithubException
		except ModuleNotFoundError as error:
			raise RuntimeError(
				"Missing dependency: PyGithub. Install it with pip install PyGithub."
			) from error
		self._github_exception_class = GithubException
		self._github_class = Github
		self._auth_module = Auth

	#============================================
	def new_github_client(self):
		"""
		Create a Github client with retry disabled so failures surface to the caller.

		A PyGithub Requester keeps one connection object that holds the pending
		request, so every search builds its own client and threads never share one.
		"""
		if self.token:
			return self._github_class(
				auth=self._auth_module.Token(self.token),
				retry=None,
				timeout=self.timeout,
			)
		return self._github_class(retry=None, timeout=self.timeout)

	#============================================
	@property
	def has_token(self) -> bool:
		return bool(self.token)

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def parse_rate_limit_reset(self, reset_value) -> datetime:
		"""
		Normalize PyGithub reset values to timezone-aware UTC datetime.
		"""
		if isinstance(reset_value, datetime):
			if reset_value.tzinfo is None:
				return reset_value.replace(tzinfo=timezone.utc)
			return reset_value.astimezone(timezone.utc)
		if isinstance(reset_value, (int, float)):
			return datetime.fromtimestamp(float(reset_value), tz=timezone.utc)
		if isinstance(reset_value, str):
			return datetime.fromisoformat(reset_value.replace("Z", "+00:00"))
		raise RuntimeError(f"Unsupported rate-limit reset value: {reset_value!r}")

	#============================================
	def get_search_rate_limit_snapshot(self, github_client=None) -> tuple[int, datetime]:
		"""
		Read search rate-limit remaining/reset across PyGithub versions.
		"""
		if github_client is None:
			github_client = self.new_github_client()
		overview = github_client.get_rate_limit()
		rate_limit = getattr(overview, "search", None)
		if rate_limit is None:
			resources = getattr(overview, "resources", None)
			if isinstance(resources, dict):
				rate_limit = resources.get("search")
			elif resources is not None:
				rate_limit = getattr(resources, "search", None)
		if rate_limit is None:
			raise RuntimeError("Rate limit data does not expose search resource fields.")
		remaining = int(getattr(rate_limit, "remaining"))
		reset_time = self.parse_rate_limit_reset(getattr(rate_limit, "reset"))
		return remaining, reset_time

	#============================================
	def call_api(self, context: str, call_fn, github_client=None):
		"""
		Run one API call and translate library failures into standup errors.
		"""
		try:
			return call_fn()
		except self._github_exception_class as error:
			self.raise_from_github_error(error, context, github_client)
		except requests.exceptions.RequestException as error:
			raise UpstreamError(f"GitHub request failed while {context}: {error}") from error

	#============================================
	def is_rate_limited(self, error: Exception) -> bool:
		"""
		Decide whether a GitHub 403/429 response is a rate-limit rejection.
		"""
		status = getattr(error, "status", None)
		if status == 429:
			return True
		if status != 403:
			return False
		headers = getattr(error, "headers", None) or {}
		remaining = None
		for key, value in headers.items():
			if str(key).lower() == "x-ratelimit-remaining":
				remaining = str(value).strip()
		if remaining == "0":
			return True
		return "rate limit" in str(getattr(error, "data", "") or "").lower()

	#============================================
	def raise_from_github_error(self, error: Exception, context: str, github_client=None) -> None:
		"""
		Raise the standup error matching one GitHub failure.
		"""
		status = getattr(error, "status", None)
		if status == 401:
			raise AuthenticationError(
				f"GitHub rejected the configured token while {context}."
			) from error
		if not self.is_rate_limited(error):
			raise UpstreamError(
				f"GitHub request failed while {context} (status {status}): {error}",
				status=status,
			) from error
		reset_text = "unknown"
		remaining_text = "unknown"
		try:
			remaining, reset_time = self.get_search_rate_limit_snapshot(github_client)
			reset_text = reset_time.isoformat()
			remaining_text = str(remaining)
		except (RuntimeError, self._github_exception_class, requests.exceptions.RequestException) as snapshot_error:
			self.log(f"Rate limit snapshot unavailable: {snapshot_error}")
		raise GitHubRateLimitError(
			"GitHub search rate limit exceeded while "
			+ f"{context}; remaining={remaining_text}; reset_at={reset_text}.",
			status=status,
			reset_at=reset_text,
		) from error

	#============================================
	def _search_page(self, github_client, query: str, page: int) -> dict:
		"""
		Fetch one raw page of /search/issues results.
		"""
		_, data = github_client.requester.requestJsonAndCheck(
			"GET",
			"/search/issues",
			parameters={"q": query, "per_page": self.per_page, "page": page},
		)
		return data

	#============================================
	def search_issues_raw(self, query: str) -> list[dict]:
		"""
		Run one issue search and paginate to exhaustion, returning raw items.

		Safe to call from several threads at once: each call pages through its
		own Github client.
		"""
		github_client = self.new_github_client()
		items: list[dict] = []
		page = 1
		while True:
			data = self.call_api(
				f"GET /search/issues page {page}",
				lambda: self._search_page(github_client, query, page),
				github_client,
			)
			if not isinstance(data, dict):
				raise UpstreamError("GitHub search returned a non-object payload.")
			page_items = data.get("items")
			if not isinstance(page_items, list):
				raise UpstreamError("GitHub search payload is missing the items list.")
			if data.get("incomplete_results"):
				self.log(f"GitHub search reported incomplete results on page {page}.")
			items.extend(page_items)
			total_count = data.get("total_count")
			if len(page_items) < self.per_page:
				break
			if isinstance(total_count, int) and len(items) >= total_count:
				break
			if len(items) >= SEARCH_RESULT_CAP:
				self.log(f"GitHub search hit the {SEARCH_RESULT_CAP}-result cap; stopping pagination.")
				break
			page += 1
		return items
