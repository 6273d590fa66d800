"""Pull-request activity collection from the GitHub search API.

GitHub search cannot answer "every pull request whose state changed in a
window" in one query, so two searches run side by side: one filtered on merge
time and one on update time. Their results are merged by URL, letting the
update-time observation win, and sorted newest first.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from datetime import timezone

from standuplib.errors import AuthenticationError
from standuplib.errors import ConfigurationError
from standuplib.errors import UpstreamError
from standuplib.models import PullRequestSummary

MERGED_QUERY_TEMPLATE = "is:pr author:{identity} merged:>={since} sort:updated-desc"
UPDATED_QUERY_TEMPLATE = "is:pr author:{identity} updated:>={since} sort:updated-desc"


#============================================
def format_search_instant(value: datetime) -> str:
	"""
	Format a datetime as the UTC instant used inside search qualifiers.
	"""
	if value.tzinfo is None:
		value = value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


#============================================
def build_search_queries(identity: str, since_instant: datetime) -> tuple[str, str]:
	"""
	Build the merged-since and updated-since search query strings.
	"""
	since_text = format_search_instant(since_instant)
	merged_query = MERGED_QUERY_TEMPLATE.format(identity=identity, since=since_text)
	updated_query = UPDATED_QUERY_TEMPLATE.format(identity=identity, since=since_text)
	return merged_query, updated_query


#============================================
def repository_from_url(repository_url) -> str:
	"""
	Return owner/name from an API repository URL.
	"""
	if not repository_url:
		return "unknown"
	parts = [part for part in str(repository_url).split("/") if part]
	if len(parts) < 2:
		return "unknown"
	return "/".join(parts[-2:])


#============================================
def normalize_search_item(item: dict) -> PullRequestSummary | None:
	"""
	Convert one raw search item into a PullRequestSummary.

	Returns None for plain issues (no pull_request sub-object). Raises
	UpstreamError when a pull request lacks a field the standup needs.
	"""
	if not isinstance(item, dict):
		raise UpstreamError(f"GitHub search item is not an object: {item!r}")
	pull_request = item.get("pull_request")
	if not isinstance(pull_request, dict):
		return None
	title = item.get("title")
	if not title:
		raise UpstreamError("GitHub search item is missing a title.")
	url = pull_request.get("html_url") or item.get("html_url")
	if not url:
		raise UpstreamError(f"GitHub search item {title!r} is missing html_url.")
	merged_at = pull_request.get("merged_at") or None
	if merged_at:
		state = "merged"
	else:
		state = str(item.get("state") or "")
		if state not in ("open", "closed"):
			raise UpstreamError(f"GitHub search item {url} has unexpected state {state!r}.")
	updated_at = item.get("updated_at") or merged_at or item.get("created_at")
	if not updated_at:
		raise UpstreamError(f"GitHub search item {url} has no timestamps.")
	return PullRequestSummary(
		title=str(title),
		repository=repository_from_url(item.get("repository_url")),
		url=str(url),
		state=state,
		updated_at=str(updated_at),
		merged_at=merged_at,
	)


#============================================
def normalize_search_items(items: list[dict]) -> list[PullRequestSummary]:
	"""
	Normalize a page-concatenated search result list, skipping plain issues.
	"""
	summaries = []
	for item in items:
		summary = normalize_search_item(item)
		if summary is not None:
			summaries.append(summary)
	return summaries


#============================================
def merge_pull_requests(
	merged: list[PullRequestSummary],
	updated: list[PullRequestSummary],
) -> list[PullRequestSummary]:
	"""
	Merge two observation lists by URL and sort newest first.

	The updated-query list is inserted second, so its observation replaces
	the merged-query one for the same URL. Sorting is stable, and ISO-8601
	timestamps from the API are fixed width, so string comparison orders them.
	"""
	by_url: dict[str, PullRequestSummary] = {}
	for item in merged:
		by_url[item.url] = item
	for item in updated:
		by_url[item.url] = item
	return sorted(by_url.values(), key=lambda item: item.updated_at, reverse=True)


#============================================
class ActivitySource:
	"""
	Collect one identity's recent pull-request activity.
	"""

	def __init__(self, client, log_fn=None):
		self.client = client
		self.log_fn = log_fn

	#============================================
	def log(self, message: str) -> None:
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def collect(self, identity: str, since_instant: datetime) -> list[PullRequestSummary]:
		"""
		Return merged, deduplicated, newest-first pull requests since an instant.
		"""
		identity = (identity or "").strip()
		if not identity:
			raise ConfigurationError("A GitHub username is required to collect activity.")
		if not self.client.has_token:
			raise AuthenticationError("Missing GitHub token for pull-request search.")
		merged_query, updated_query = build_search_queries(identity, since_instant)
		self.log(f"Searching pull requests for @{identity} since {format_search_instant(since_instant)}.")
		with ThreadPoolExecutor(max_workers=2) as executor:
			merged_future = executor.submit(self.client.search_issues_raw, merged_query)
			updated_future = executor.submit(self.client.search_issues_raw, updated_query)
			merged_raw = merged_future.result()
			updated_raw = updated_future.result()
		merged = normalize_search_items(merged_raw)
		updated = normalize_search_items(updated_raw)
		activity = merge_pull_requests(merged, updated)
		self.log(
			f"Collected {len(activity)} pull request(s) "
			+ f"({len(merged)} merged-query, {len(updated)} updated-query)."
		)
		return activity
