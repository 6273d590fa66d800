"""Anthropic Messages API client that condenses raw PR bullets into a standup.

The client never retries. A 429 response becomes a
RetryableSummarizationError carrying the server's wait hint so the scheduler
can decide when to try again.
"""

from dataclasses import dataclass
from datetime import datetime
from datetime import timezone
from email.utils import parsedate_to_datetime

import requests

from standuplib import prompt_loader
from standuplib.errors import ConfigurationError
from standuplib.errors import RetryableSummarizationError
from standuplib.errors import UpstreamError
from standuplib.models import SENTINEL_SUMMARY_BULLET

DEFAULT_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 600
DEFAULT_TEMPERATURE = 0.4
DEFAULT_RETRY_AFTER_SECONDS = 60
SYSTEM_MESSAGE = (
	"You are an assistant that condenses GitHub pull request updates into crisp standup notes."
)
# connect and read timeouts in seconds
REQUEST_TIMEOUT = (10, 120)


#============================================
@dataclass
class SummarizationResult:
	summary_bullets: list[str]
	raw_response: dict
	model: str


#============================================
def parse_retry_after(value, now: datetime | None = None) -> int:
	"""
	Parse a retry-after header into whole seconds.

	Accepts delta-seconds or an HTTP date. Missing, unparseable, or
	non-positive values fall back to 60 seconds.
	"""
	if value is None:
		return DEFAULT_RETRY_AFTER_SECONDS
	text = str(value).strip()
	if not text:
		return DEFAULT_RETRY_AFTER_SECONDS
	if text.isdigit():
		seconds = int(text)
		if seconds > 0:
			return seconds
		return DEFAULT_RETRY_AFTER_SECONDS
	try:
		retry_at = parsedate_to_datetime(text)
	except (TypeError, ValueError):
		return DEFAULT_RETRY_AFTER_SECONDS
	if retry_at is None:
		return DEFAULT_RETRY_AFTER_SECONDS
	if retry_at.tzinfo is None:
		retry_at = retry_at.replace(tzinfo=timezone.utc)
	if now is None:
		now = datetime.now(timezone.utc)
	seconds = int((retry_at - now).total_seconds())
	if seconds <= 0:
		return DEFAULT_RETRY_AFTER_SECONDS
	return seconds


#============================================
def normalize_summary_text(text: str) -> list[str]:
	"""
	Split model output into '-' prefixed bullet lines, never returning empty.
	"""
	bullets = []
	for line in (text or "").splitlines():
		line = line.strip()
		if not line:
			continue
		if not line.startswith("-"):
			line = f"- {line}"
		bullets.append(line)
	if not bullets:
		return [SENTINEL_SUMMARY_BULLET]
	return bullets


#============================================
def extract_response_text(payload: dict) -> str:
	"""
	Join all text fragments of a Messages API response.
	"""
	content = payload.get("content")
	if content is None:
		return ""
	if not isinstance(content, list):
		raise UpstreamError("Claude response content is not a list.")
	fragments = []
	for chunk in content:
		if isinstance(chunk, dict):
			fragments.append(str(chunk.get("text") or ""))
	return "\n".join(fragments).strip()


#============================================
def build_prompt(
	prompt_instructions: str,
	username: str,
	hours: int,
	raw_bullets: list[str],
	now: datetime | None = None,
) -> str:
	"""
	Render the single-turn user prompt for one standup.
	"""
	if now is None:
		now = datetime.now(timezone.utc)
	template = prompt_loader.load_prompt("standup_request.txt")
	rendered = prompt_loader.render_prompt(template, {
		"instructions": prompt_instructions.strip(),
		"now": now.isoformat(),
		"username": username,
		"hours": str(hours),
		"raw_entries": "\n".join(raw_bullets),
	})
	return rendered.rstrip("\n")


#============================================
class ClaudeClient:
	"""
	Summarization adapter for the Anthropic Messages endpoint.
	"""

	def __init__(
		self,
		api_key: str,
		model: str = DEFAULT_MODEL,
		api_url: str = DEFAULT_API_URL,
		max_tokens: int = DEFAULT_MAX_TOKENS,
		temperature: float = DEFAULT_TEMPERATURE,
		session=None,
		log_fn=None,
	):
		if not (api_key or "").strip():
			raise ConfigurationError("ClaudeClient requires an Anthropic API key.")
		self.api_key = api_key.strip()
		self.model = model or DEFAULT_MODEL
		self.api_url = api_url or DEFAULT_API_URL
		self.max_tokens = int(max_tokens)
		self.temperature = float(temperature)
		self.session = session if session is not None else requests.Session()
		self.log_fn = log_fn

	#============================================
	def log(self, message: str) -> None:
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def build_request_body(self, prompt: str, model: str) -> dict:
		return {
			"model": model,
			"max_tokens": self.max_tokens,
			"temperature": self.temperature,
			"system": SYSTEM_MESSAGE,
			"messages": [
				{"role": "user", "content": prompt},
			],
		}

	#============================================
	def build_headers(self) -> dict:
		return {
			"content-type": "application/json",
			"anthropic-version": ANTHROPIC_VERSION,
			"x-api-key": self.api_key,
		}

	#============================================
	def summarize(
		self,
		username: str,
		hours: int,
		raw_bullets: list[str],
		prompt_instructions: str,
		model: str | None = None,
	) -> SummarizationResult:
		"""
		Send raw bullets to the model and return normalized summary bullets.
		"""
		model_name = model or self.model
		prompt = build_prompt(prompt_instructions, username, hours, raw_bullets)
		body = self.build_request_body(prompt, model_name)
		self.log(f"Requesting summary from {model_name} for {len(raw_bullets)} raw bullet(s).")
		try:
			response = self.session.post(
				self.api_url,
				headers=self.build_headers(),
				json=body,
				timeout=REQUEST_TIMEOUT,
			)
		except requests.exceptions.RequestException as error:
			raise UpstreamError(f"Claude request failed: {error}") from error

		if response.status_code == 429:
			retry_after = parse_retry_after(response.headers.get("retry-after"))
			self.log(f"Claude rate limit hit; retry after {retry_after}s.")
			raise RetryableSummarizationError(
				"Claude rate limit hit",
				retry_after_seconds=retry_after,
			)
		if not 200 <= response.status_code < 300:
			text = (response.text or "")[:500]
			raise UpstreamError(
				f"Claude request failed ({response.status_code}): {text}",
				status=response.status_code,
			)
		try:
			payload = response.json()
		except ValueError as error:
			raise UpstreamError("Claude response was not valid JSON.") from error
		if not isinstance(payload, dict):
			raise UpstreamError("Claude response was not a JSON object.")

		summary_bullets = normalize_summary_text(extract_response_text(payload))
		return SummarizationResult(
			summary_bullets=summary_bullets,
			raw_response=payload,
			model=model_name,
		)
