"""Daily trigger computation and the standup scheduling loop.

The next trigger is anchored to local wall-clock time in the configured
timezone, so the run stays at the same local hour across daylight-saving
changes. After a restart the loop simply recomputes the next trigger from the
current time.

States: awaiting_trigger -> running -> persisting -> awaiting_trigger, and
stopped once the loop exits.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

from standuplib.errors import AuthenticationError
from standuplib.errors import ConfigurationError
from standuplib.errors import RetryableSummarizationError
from standuplib.errors import StorageError
from standuplib.errors import UpstreamError

STATE_AWAITING_TRIGGER = "awaiting_trigger"
STATE_RUNNING = "running"
STATE_PERSISTING = "persisting"
STATE_STOPPED = "stopped"


#============================================
@dataclass(frozen=True)
class ScheduleOptions:
	hour: int = 21
	minute: int = 0
	timezone: str = "America/Los_Angeles"
	run_immediately: bool = True
	max_rate_limit_retries: int = 3


#============================================
def resolve_zone(timezone_name: str) -> ZoneInfo:
	"""
	Resolve an IANA timezone name, raising ConfigurationError when unknown.
	"""
	try:
		return ZoneInfo(timezone_name)
	except (ZoneInfoNotFoundError, ValueError) as error:
		raise ConfigurationError(f"Unknown timezone: {timezone_name!r}") from error


#============================================
def compute_next_trigger(
	hour: int,
	minute: int,
	timezone_name: str,
	now: datetime | None = None,
) -> datetime:
	"""
	Return the next local hour:minute strictly after now, in the given zone.

	Adding a timedelta to a zoneinfo datetime moves the wall clock, so
	"tomorrow at 21:00" stays 21:00 local across DST transitions.
	"""
	zone = resolve_zone(timezone_name)
	if now is None:
		now = datetime.now(timezone.utc)
	if now.tzinfo is None:
		raise ValueError("now must be timezone-aware")
	now_local = now.astimezone(zone)
	scheduled = now_local.replace(hour=hour, minute=minute, second=0, microsecond=0)
	# compare instants in UTC; same-zone comparison ignores offset changes
	if scheduled.astimezone(timezone.utc) <= now_local.astimezone(timezone.utc):
		scheduled = scheduled + timedelta(days=1)
	return scheduled


#============================================
def seconds_until(target: datetime, now: datetime) -> float:
	"""
	Seconds between two aware datetimes, never negative.
	"""
	delta = target.astimezone(timezone.utc) - now.astimezone(timezone.utc)
	return max(0.0, delta.total_seconds())


#============================================
class StandupScheduler:
	"""
	Drive repeated standup runs at a fixed local time of day.
	"""

	def __init__(
		self,
		runner,
		identity: str,
		hours: int,
		options: ScheduleOptions,
		model_override: str | None = None,
		log_fn=None,
		wait_fn=None,
		now_fn=None,
	):
		resolve_zone(options.timezone)
		self.runner = runner
		self.identity = identity
		self.hours = hours
		self.options = options
		self.model_override = model_override
		self.log_fn = log_fn
		self.now_fn = now_fn or (lambda: datetime.now(timezone.utc))
		self._stop_event = threading.Event()
		self.wait_fn = wait_fn or self._stop_event.wait
		self.state = STATE_AWAITING_TRIGGER
		self.rate_limit_attempts = 0
		self.last_result = None

	#============================================
	def log(self, message: str) -> None:
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def stop(self) -> None:
		"""
		Request the loop to exit, interrupting any pending wait.
		"""
		self._stop_event.set()

	#============================================
	@property
	def stop_requested(self) -> bool:
		return self._stop_event.is_set()

	#============================================
	def _on_stage(self, stage: str) -> None:
		if stage == "persisting":
			self.state = STATE_PERSISTING
		else:
			self.state = STATE_RUNNING

	#============================================
	def next_wait(self, retry_after_seconds: int | None = None) -> tuple[float, datetime]:
		"""
		Return seconds to wait and the scheduled trigger it is measured against.

		A rate-limit hint shortens the wait but never pushes it past the
		regular trigger.
		"""
		now = self.now_fn()
		trigger = compute_next_trigger(
			self.options.hour,
			self.options.minute,
			self.options.timezone,
			now=now,
		)
		wait_seconds = seconds_until(trigger, now)
		if retry_after_seconds is not None:
			wait_seconds = min(float(retry_after_seconds), wait_seconds)
		return wait_seconds, trigger

	#============================================
	def run_cycle(self) -> int | None:
		"""
		Run the standup once, returning a retry delay after a rate limit.

		ConfigurationError propagates; every other failure is logged so the
		next scheduled cycle still happens.
		"""
		self.state = STATE_RUNNING
		try:
			self.last_result = self.runner.run_once(
				self.identity,
				self.hours,
				model_override=self.model_override,
				stage_fn=self._on_stage,
			)
		except RetryableSummarizationError as error:
			self.rate_limit_attempts += 1
			if self.rate_limit_attempts > self.options.max_rate_limit_retries:
				self.log(
					f"Rate limit retry budget ({self.options.max_rate_limit_retries}) "
					+ "exhausted; waiting for the next scheduled slot."
				)
				self.rate_limit_attempts = 0
				return None
			self.log(
				f"Summarization rate limit hit; retry {self.rate_limit_attempts}/"
				+ f"{self.options.max_rate_limit_retries} in {error.retry_after_seconds}s."
			)
			return error.retry_after_seconds
		except ConfigurationError:
			self.state = STATE_STOPPED
			raise
		except (AuthenticationError, UpstreamError) as error:
			self.log(f"Standup run failed: {error}")
		except StorageError as error:
			self.log(f"Standup generated but storage failed: {error}")
		except Exception as error:
			self.log(f"Standup run failed with unexpected error: {error!r}")
		else:
			self.log("Standup run complete. Summary bullets:")
			for bullet in self.last_result.summary_bullets:
				self.log(f"  {bullet}")
		finally:
			if self.state != STATE_STOPPED:
				self.state = STATE_AWAITING_TRIGGER
		self.rate_limit_attempts = 0
		return None

	#============================================
	def run_forever(self, max_cycles: int | None = None) -> int:
		"""
		Run immediately if configured, then once per scheduled trigger.

		Returns the number of runs attempted. max_cycles bounds the loop.
		"""
		cycles = 0
		retry_after = None
		try:
			if self.options.run_immediately and not self.stop_requested:
				retry_after = self.run_cycle()
				cycles += 1
			while not self.stop_requested:
				if max_cycles is not None and cycles >= max_cycles:
					break
				self.state = STATE_AWAITING_TRIGGER
				wait_seconds, trigger = self.next_wait(retry_after)
				if retry_after is not None:
					self.log(f"Retrying in {int(wait_seconds)}s after rate limit.")
				else:
					self.log(f"Sleeping until {trigger.isoformat()} ({int(wait_seconds)}s).")
				if self.wait_fn(wait_seconds):
					break
				if self.stop_requested:
					break
				retry_after = self.run_cycle()
				cycles += 1
		finally:
			self.state = STATE_STOPPED
		return cycles
