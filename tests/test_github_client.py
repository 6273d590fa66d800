import json
import os
import sys
import time
import urllib.parse
from datetime import datetime
from datetime import timezone
from types import SimpleNamespace

import github.Requester
import pytest
import requests

# add pipeline directory to path for standuplib imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from standuplib import activity_source
from standuplib import github_client
from standuplib.errors import AuthenticationError
from standuplib.errors import GitHubRateLimitError
from standuplib.errors import UpstreamError


#============================================
class FakeGithubException(Exception):
	"""
	Mimic PyGithub GithubException status/data/headers attributes.
	"""

	def __init__(self, status: int, data=None, headers=None):
		super().__init__(f"{status} {data}")
		self.status = status
		self.data = data
		self.headers = headers or {}


#============================================
class FakeRequester:
	"""
	Serve canned /search/issues pages and record requested parameters.
	"""

	def __init__(self, pages):
		self.pages = list(pages)
		self.calls = []

	def requestJsonAndCheck(self, verb, url, parameters=None):
		self.calls.append((verb, url, dict(parameters or {})))
		page = self.pages.pop(0)
		if isinstance(page, Exception):
			raise page
		return {}, page


#============================================
def make_stub_client(requester=None, overview_object=None, per_page: int = 2, token: str = "ghp_test"):
	"""
	Build GitHubClient instance with mocked PyGithub internals.
	"""
	client = github_client.GitHubClient.__new__(github_client.GitHubClient)
	client.token = token
	client.log_fn = None
	client.per_page = per_page
	client.timeout = 30
	client._github_exception_class = FakeGithubException
	client.new_github_client = lambda: SimpleNamespace(
		requester=requester,
		get_rate_limit=lambda: overview_object,
	)
	return client


#============================================
def test_search_issues_raw_paginates_until_short_page() -> None:
	"""
	Pagination should stop after a page smaller than per_page.
	"""
	requester = FakeRequester([
		{"total_count": 99, "items": [{"id": 1}, {"id": 2}]},
		{"total_count": 99, "items": [{"id": 3}]},
	])
	client = make_stub_client(requester)
	items = client.search_issues_raw("is:pr author:alice")
	assert [item["id"] for item in items] == [1, 2, 3]
	assert [call[2]["page"] for call in requester.calls] == [1, 2]
	assert requester.calls[0][1] == "/search/issues"
	assert requester.calls[0][2]["q"] == "is:pr author:alice"


#============================================
def test_search_issues_raw_stops_at_total_count() -> None:
	"""
	A full final page matching total_count should not trigger another request.
	"""
	requester = FakeRequester([
		{"total_count": 4, "items": [{"id": 1}, {"id": 2}]},
		{"total_count": 4, "items": [{"id": 3}, {"id": 4}]},
	])
	client = make_stub_client(requester)
	items = client.search_issues_raw("q")
	assert len(items) == 4
	assert len(requester.calls) == 2


#============================================
def test_search_issues_raw_empty_result() -> None:
	"""
	An empty first page should return an empty list.
	"""
	client = make_stub_client(FakeRequester([{"total_count": 0, "items": []}]))
	assert client.search_issues_raw("q") == []


#============================================
def test_search_issues_raw_rejects_malformed_payload() -> None:
	"""
	Payloads without an items list should raise UpstreamError.
	"""
	client = make_stub_client(FakeRequester([{"total_count": 1}]))
	with pytest.raises(UpstreamError):
		client.search_issues_raw("q")


#============================================
def test_unauthorized_maps_to_authentication_error() -> None:
	"""
	GitHub 401 responses should raise AuthenticationError.
	"""
	client = make_stub_client(FakeRequester([FakeGithubException(401, {"message": "Bad credentials"})]))
	with pytest.raises(AuthenticationError):
		client.search_issues_raw("q")


#============================================
def test_validation_failure_maps_to_upstream_error() -> None:
	"""
	Non-rate-limit failures should raise UpstreamError with the status.
	"""
	client = make_stub_client(FakeRequester([FakeGithubException(422, {"message": "Validation Failed"})]))
	with pytest.raises(UpstreamError) as excinfo:
		client.search_issues_raw("q")
	assert excinfo.value.status == 422
	assert not isinstance(excinfo.value, GitHubRateLimitError)


#============================================
def test_rate_limited_search_reports_reset_time() -> None:
	"""
	A 403 with exhausted rate limit should raise GitHubRateLimitError.
	"""
	reset_time = datetime(2026, 2, 22, 3, 30, 0, tzinfo=timezone.utc)
	overview = SimpleNamespace(search=SimpleNamespace(remaining=0, reset=reset_time))
	error = FakeGithubException(
		403,
		{"message": "API rate limit exceeded"},
		headers={"X-RateLimit-Remaining": "0"},
	)
	client = make_stub_client(FakeRequester([error]), overview_object=overview)
	with pytest.raises(GitHubRateLimitError) as excinfo:
		client.search_issues_raw("q")
	assert excinfo.value.reset_at == reset_time.isoformat()
	assert "remaining=0" in str(excinfo.value)


#============================================
def test_network_failure_maps_to_upstream_error() -> None:
	"""
	Transport failures from requests should raise UpstreamError.
	"""
	client = make_stub_client(FakeRequester([requests.exceptions.ConnectionError("down")]))
	with pytest.raises(UpstreamError):
		client.search_issues_raw("q")


#============================================
def test_search_rate_limit_snapshot_from_resources_attribute() -> None:
	"""
	Rate limit should parse from overview.resources.search shape.
	"""
	overview = SimpleNamespace(
		resources=SimpleNamespace(
			search=SimpleNamespace(
				remaining=9,
				reset="2026-02-22T03:35:00+00:00",
			)
		)
	)
	client = make_stub_client(overview_object=overview)
	remaining, parsed_reset = client.get_search_rate_limit_snapshot()
	assert remaining == 9
	assert parsed_reset.isoformat() == "2026-02-22T03:35:00+00:00"


#============================================
def test_search_rate_limit_snapshot_from_resources_dict() -> None:
	"""
	Rate limit should parse from overview.resources['search'] epoch shape.
	"""
	overview = SimpleNamespace(
		resources={
			"search": SimpleNamespace(
				remaining=3,
				reset=1761110400,
			)
		}
	)
	client = make_stub_client(overview_object=overview)
	remaining, parsed_reset = client.get_search_rate_limit_snapshot()
	assert remaining == 3
	assert parsed_reset.tzinfo is not None


#============================================
def test_rate_limit_error_without_snapshot_still_raises() -> None:
	"""
	Unknown rate-limit shape should still yield GitHubRateLimitError.
	"""
	client = make_stub_client(
		FakeRequester([FakeGithubException(429, {"message": "slow down"})]),
		overview_object=SimpleNamespace(resources={}),
	)
	with pytest.raises(GitHubRateLimitError) as excinfo:
		client.search_issues_raw("q")
	assert excinfo.value.reset_at == "unknown"


#============================================
def make_search_response(url: str, number: int) -> requests.Response:
	"""
	Build a one-item /search/issues response for pull request number.
	"""
	pr_url = f"https://github.com/acme/widgets/pull/{number}"
	body = {
		"total_count": 1,
		"incomplete_results": False,
		"items": [
			{
				"title": f"PR {number}",
				"repository_url": "https://api.github.com/repos/acme/widgets",
				"html_url": pr_url,
				"state": "closed" if number == 1 else "open",
				"updated_at": f"2026-02-22T0{number}:00:00Z",
				"created_at": "2026-02-20T00:00:00Z",
				"pull_request": {
					"html_url": pr_url,
					"merged_at": "2026-02-22T01:00:00Z" if number == 1 else None,
				},
			}
		],
	}
	response = requests.Response()
	response.status_code = 200
	response.url = url
	response.encoding = "utf-8"
	response.headers["Content-Type"] = "application/json"
	response._content = json.dumps(body).encode("utf-8")
	return response


#============================================
def test_concurrent_searches_keep_their_own_queries(monkeypatch) -> None:
	"""
	Both searches reach GitHub with their own query when run side by side.

	The real PyGithub request path is used with the HTTP session patched, and
	each connection pauses between storing and sending a request so two
	threads sharing one connection would swap queries.
	"""
	sent_queries = []

	def fake_get(session, url, **kwargs):
		query = urllib.parse.parse_qs(urllib.parse.urlsplit(url).query)["q"][0]
		sent_queries.append(query)
		number = 1 if " merged:>=" in query else 2
		return make_search_response(url, number)

	original_request = github.Requester.HTTPSRequestsConnectionClass.request

	def slow_request(self, *args, **kwargs):
		original_request(self, *args, **kwargs)
		time.sleep(0.05)

	monkeypatch.setattr(requests.Session, "get", fake_get)
	monkeypatch.setattr(github.Requester.HTTPSRequestsConnectionClass, "request", slow_request)

	client = github_client.GitHubClient("ghp_test")
	source = activity_source.ActivitySource(client)
	activity = source.collect("alice", datetime(2026, 2, 21, tzinfo=timezone.utc))

	assert [item.url.rsplit("/", 1)[-1] for item in activity] == ["2", "1"]
	assert activity[1].state == "merged"
	assert len(sent_queries) == 2
	assert sum(" merged:>=" in query for query in sent_queries) == 1
	assert sum(" updated:>=" in query for query in sent_queries) == 1
