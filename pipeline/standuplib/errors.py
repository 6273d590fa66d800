"""Error taxonomy shared by the standup adapters, store, and scheduler."""


#============================================
class StandupError(RuntimeError):
	"""
	Base class for all standup pipeline failures.
	"""


#============================================
class ConfigurationError(StandupError):
	"""
	Raised when a required setting or credential is missing or invalid.
	"""


#============================================
class AuthenticationError(StandupError):
	"""
	Raised when GitHub credentials are missing or rejected.
	"""


#============================================
class UpstreamError(StandupError):
	"""
	Raised for non-recoverable responses from GitHub or the language model.
	"""

	def __init__(self, message: str, status: int | None = None):
		super().__init__(message)
		self.status = status


#============================================
class GitHubRateLimitError(UpstreamError):
	"""
	Raised when the GitHub search rate limit blocks further requests.
	"""

	def __init__(self, message: str, status: int | None = None, reset_at: str = "unknown"):
		super().__init__(message, status=status)
		self.reset_at = reset_at


#============================================
class RetryableSummarizationError(StandupError):
	"""
	Raised when the summarization endpoint rate limits a request.
	"""

	def __init__(self, message: str, retry_after_seconds: int = 60):
		super().__init__(message)
		self.retry_after_seconds = int(retry_after_seconds)


#============================================
class StorageError(StandupError):
	"""
	Raised when a record store cannot read or write standup records.

	run_result carries the in-memory run result when a standup was generated
	but could not be persisted.
	"""

	def __init__(self, message: str, run_result=None):
		super().__init__(message)
		self.run_result = run_result
