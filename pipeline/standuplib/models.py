"""Record types for pull-request activity and generated standups.

JSON shapes use the camelCase keys of the standup-data directory layout so
records written by earlier deployments stay readable.
"""

from __future__ import annotations

from dataclasses import dataclass, field

PR_STATES = ("open", "closed", "merged")
SENTINEL_SUMMARY_BULLET = "- No notable updates to report."
NO_ACTIVITY_BULLET = "- No GitHub PR activity recorded in this window."


#============================================
@dataclass(frozen=True)
class PullRequestSummary:
	"""
	One pull request observed by the activity source.
	"""

	title: str
	repository: str
	url: str
	state: str
	updated_at: str
	merged_at: str | None = None

	def to_dict(self) -> dict:
		return {
			"title": self.title,
			"repository": self.repository,
			"url": self.url,
			"state": self.state,
			"mergedAt": self.merged_at,
			"updatedAt": self.updated_at,
		}

	@classmethod
	def from_dict(cls, data: dict) -> PullRequestSummary:
		state = str(data["state"])
		if state not in PR_STATES:
			raise ValueError(f"Unknown pull request state: {state!r}")
		merged_at = data.get("mergedAt") or None
		# merged state and a merge timestamp always travel together
		if (state == "merged") != (merged_at is not None):
			raise ValueError(
				f"Pull request {data.get('url')!r} has state {state!r} with mergedAt={merged_at!r}"
			)
		return cls(
			title=str(data["title"]),
			repository=str(data["repository"]),
			url=str(data["url"]),
			state=state,
			updated_at=str(data["updatedAt"]),
			merged_at=merged_at,
		)


#============================================
@dataclass
class StandupRecord:
	"""
	One generated standup for a UTC calendar date and identity.
	"""

	generated_at: str
	date_key: str
	username: str
	hours: int
	model_identifier: str | None = None
	raw_bullets: list[str] = field(default_factory=list)
	summary_bullets: list[str] = field(default_factory=list)
	activity: list[PullRequestSummary] = field(default_factory=list)

	def to_dict(self) -> dict:
		return {
			"generatedAt": self.generated_at,
			"dateKey": self.date_key,
			"username": self.username,
			"hours": self.hours,
			"claudeModel": self.model_identifier,
			"rawBullets": list(self.raw_bullets),
			"summaryBullets": list(self.summary_bullets),
			"activity": [item.to_dict() for item in self.activity],
		}

	@classmethod
	def from_dict(cls, data: dict) -> StandupRecord:
		if not isinstance(data, dict):
			raise ValueError("Standup record must be a JSON object.")
		model_identifier = data.get("claudeModel")
		if model_identifier is None:
			model_identifier = data.get("modelIdentifier")
		return cls(
			generated_at=str(data["generatedAt"]),
			date_key=str(data["dateKey"]),
			username=str(data["username"]),
			hours=int(data["hours"]),
			model_identifier=model_identifier,
			raw_bullets=[str(line) for line in data.get("rawBullets") or []],
			summary_bullets=[str(line) for line in data.get("summaryBullets") or []],
			activity=[
				PullRequestSummary.from_dict(item)
				for item in data.get("activity") or []
			],
		)


#============================================
@dataclass
class StandupRunResult:
	"""
	Summary of one orchestrator run, returned to schedulers and handlers.
	"""

	generated_at: str
	date_key: str
	hours: int
	model_identifier: str | None
	raw_bullets: list[str]
	summary_bullets: list[str]

	def to_dict(self) -> dict:
		return {
			"generatedAt": self.generated_at,
			"dateKey": self.date_key,
			"hours": self.hours,
			"claudeModel": self.model_identifier,
			"rawBullets": list(self.raw_bullets),
			"summaryBullets": list(self.summary_bullets),
		}
