"""One standup run: collect pull requests, summarize them, persist the record.

The runner composes the adapters and does not retry. Rate-limit errors from
the summarizer propagate so the scheduler or an interactive caller can decide
when to try again.
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone

from standuplib import prompt_loader
from standuplib.activity_source import ActivitySource
from standuplib.claude_client import ClaudeClient
from standuplib.errors import ConfigurationError
from standuplib.errors import StorageError
from standuplib.github_client import GitHubClient
from standuplib.models import NO_ACTIVITY_BULLET
from standuplib.models import PullRequestSummary
from standuplib.models import StandupRecord
from standuplib.models import StandupRunResult
from standuplib.record_store import create_record_store

STATE_TAGS = {
	"merged": ":pr-merged:",
	"open": ":pr-open:",
	"closed": ":pr-closed:",
}
SUMMARY_PROMPT_NAME = "standup_summary.txt"


#============================================
def utc_now() -> datetime:
	"""
	Return UTC now as a timezone-aware datetime.
	"""
	return datetime.now(timezone.utc)


#============================================
def build_raw_bullets(activity: list[PullRequestSummary]) -> list[str]:
	"""
	Render one tagged line per pull request, or the no-activity sentinel.
	"""
	if not activity:
		return [NO_ACTIVITY_BULLET]
	bullets = []
	for item in activity:
		tag = STATE_TAGS.get(item.state, STATE_TAGS["closed"])
		bullets.append(f"- {tag} {item.title} [{item.repository}] ({item.url})")
	return bullets


#============================================
class StandupRunner:
	"""
	Compose activity collection, summarization, and persistence.
	"""

	def __init__(
		self,
		activity_source,
		summarizer,
		store,
		prompt_instructions: str = "",
		log_fn=None,
		now_fn=None,
	):
		self.activity_source = activity_source
		self.summarizer = summarizer
		self.store = store
		self.prompt_instructions = prompt_instructions or prompt_loader.load_prompt(SUMMARY_PROMPT_NAME)
		self.log_fn = log_fn
		self.now_fn = now_fn or utc_now

	#============================================
	def log(self, message: str) -> None:
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def run_once(
		self,
		identity: str,
		hours: int,
		model_override: str | None = None,
		stage_fn=None,
	) -> StandupRunResult:
		"""
		Generate and persist the standup for the current UTC date.
		"""
		if isinstance(hours, bool) or not isinstance(hours, int) or hours < 1:
			raise ConfigurationError(f"Lookback hours must be a positive integer: {hours!r}")
		now = self.now_fn().astimezone(timezone.utc)
		generated_at = now.isoformat(timespec="seconds")
		date_key = generated_at[:10]
		since_instant = now - timedelta(hours=hours)

		if stage_fn is not None:
			stage_fn("collecting")
		activity = self.activity_source.collect(identity, since_instant)
		raw_bullets = build_raw_bullets(activity)

		if stage_fn is not None:
			stage_fn("summarizing")
		summary = self.summarizer.summarize(
			identity,
			hours,
			raw_bullets,
			self.prompt_instructions,
			model=model_override,
		)

		record = StandupRecord(
			generated_at=generated_at,
			date_key=date_key,
			username=identity,
			hours=hours,
			model_identifier=summary.model,
			raw_bullets=raw_bullets,
			summary_bullets=summary.summary_bullets,
			activity=activity,
		)
		result = StandupRunResult(
			generated_at=generated_at,
			date_key=date_key,
			hours=hours,
			model_identifier=summary.model,
			raw_bullets=raw_bullets,
			summary_bullets=summary.summary_bullets,
		)

		if stage_fn is not None:
			stage_fn("persisting")
		try:
			self.store.save(record)
		except StorageError as error:
			error.run_result = result
			raise
		self.log(f"Wrote standup for {date_key} ({len(activity)} pull request(s)).")
		return result


#============================================
def create_standup_runner(settings, log_fn=None) -> StandupRunner:
	"""
	Wire the GitHub, Claude, and storage adapters from validated settings.
	"""
	github = GitHubClient(settings.github_token, log_fn=log_fn)
	summarizer = ClaudeClient(
		api_key=settings.anthropic_api_key,
		model=settings.anthropic_model,
		api_url=settings.anthropic_api_url,
		max_tokens=settings.max_tokens,
		temperature=settings.temperature,
		log_fn=log_fn,
	)
	return StandupRunner(
		ActivitySource(github, log_fn=log_fn),
		summarizer,
		create_record_store(settings),
		log_fn=log_fn,
	)
