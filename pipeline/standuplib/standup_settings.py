import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

import dotenv
import yaml

from standuplib.errors import ConfigurationError

DEFAULT_SETTINGS_PATH = "settings.yaml"
DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_TIMEZONE = "America/Los_Angeles"
STORAGE_BACKENDS = ("file", "sqlite")

# environment variable -> settings.yaml key path
ENV_OVERRIDES = {
	"STANDUP_GITHUB_USERNAME": ["github", "username"],
	"GITHUB_TOKEN": ["github", "token"],
	"ANTHROPIC_API_KEY": ["anthropic", "api_key"],
	"ANTHROPIC_MODEL": ["anthropic", "model"],
	"STANDUP_LOOKBACK_HOURS": ["standup", "lookback_hours"],
	"STANDUP_STORAGE_DIR": ["standup", "storage_dir"],
	"STANDUP_STORAGE_BACKEND": ["standup", "storage_backend"],
	"STANDUP_TIMEZONE": ["schedule", "timezone"],
	"STANDUP_SCHEDULE_HOUR": ["schedule", "hour"],
	"STANDUP_SCHEDULE_MINUTE": ["schedule", "minute"],
	"STANDUP_RUN_IMMEDIATELY": ["schedule", "run_immediately"],
}


#============================================
@dataclass(frozen=True)
class StandupSettings:
	"""
	Validated settings for one standup deployment.
	"""

	github_username: str
	github_token: str
	anthropic_api_key: str
	anthropic_model: str
	anthropic_api_url: str
	max_tokens: int
	temperature: float
	lookback_hours: int
	storage_dir: str
	storage_backend: str
	timezone: str
	schedule_hour: int
	schedule_minute: int
	run_immediately: bool
	max_rate_limit_retries: int


#============================================
def get_repo_root() -> str:
	"""
	Return repository root based on this module location.
	"""
	module_dir = os.path.dirname(os.path.abspath(__file__))
	repo_root = os.path.dirname(os.path.dirname(module_dir))
	return repo_root


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve settings path against cwd first, then repo root.
	"""
	if os.path.isabs(path_text):
		return path_text
	cwd_candidate = os.path.abspath(path_text)
	if os.path.isfile(cwd_candidate):
		return cwd_candidate
	repo_root = get_repo_root()
	repo_candidate = os.path.join(repo_root, path_text)
	return os.path.abspath(repo_candidate)


#============================================
def load_env_files(directory: str = "") -> None:
	"""
	Load .env then .env.local from a directory, the latter overriding.
	"""
	base_dir = directory or os.getcwd()
	dotenv.load_dotenv(os.path.join(base_dir, ".env"))
	dotenv.load_dotenv(os.path.join(base_dir, ".env.local"), override=True)


#============================================
def load_settings(path_text: str) -> tuple[dict, str]:
	"""
	Load YAML settings dict and return it with resolved path.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	with open(resolved_path, "r", encoding="utf-8") as handle:
		data = yaml.safe_load(handle.read())
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise ConfigurationError(f"Settings file must contain a mapping: {resolved_path}")
	return data, resolved_path


#============================================
def get_nested_value(settings: dict, keys: list[str], default_value):
	"""
	Read nested mapping value by key path.
	"""
	current = settings
	for key in keys:
		if not isinstance(current, dict):
			return default_value
		if key not in current:
			return default_value
		current = current[key]
	return current


#============================================
def set_nested_value(settings: dict, keys: list[str], value) -> None:
	"""
	Write a nested mapping value by key path, creating parents.
	"""
	current = settings
	for key in keys[:-1]:
		child = current.get(key)
		if not isinstance(child, dict):
			child = {}
			current[key] = child
		current = child
	current[keys[-1]] = value


#============================================
def apply_env_overrides(settings: dict, environ) -> dict:
	"""
	Return a copy of settings with non-empty environment values applied.
	"""
	merged = _copy_mapping(settings)
	for env_name, keys in ENV_OVERRIDES.items():
		value = (environ.get(env_name) or "").strip()
		if value:
			set_nested_value(merged, keys, value)
	return merged


#============================================
def _copy_mapping(value):
	if isinstance(value, dict):
		return {key: _copy_mapping(child) for key, child in value.items()}
	return value


#============================================
def get_setting_str(settings: dict, keys: list[str], default_value: str) -> str:
	"""
	Read a string setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	return str(value).strip()


#============================================
def get_setting_int(settings: dict, keys: list[str], default_value: int) -> int:
	"""
	Read an integer setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	try:
		return int(value)
	except ValueError as error:
		raise ConfigurationError(f"Invalid integer for setting path {'.'.join(keys)}: {value}") from error


#============================================
def get_setting_float(settings: dict, keys: list[str], default_value: float) -> float:
	"""
	Read a float setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	try:
		return float(value)
	except ValueError as error:
		raise ConfigurationError(f"Invalid number for setting path {'.'.join(keys)}: {value}") from error


#============================================
def get_setting_bool(settings: dict, keys: list[str], default_value: bool) -> bool:
	"""
	Read a boolean setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if isinstance(value, bool):
		return value
	if isinstance(value, str):
		text = value.strip().lower()
		if text in {"1", "true", "yes", "on"}:
			return True
		if text in {"0", "false", "no", "off"}:
			return False
		raise ConfigurationError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}")
	if isinstance(value, int):
		return value != 0
	if value is None:
		return default_value
	raise ConfigurationError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}")


#============================================
def validate_timezone(name: str) -> str:
	"""
	Ensure an IANA timezone name resolves.
	"""
	try:
		ZoneInfo(name)
	except (ZoneInfoNotFoundError, ValueError) as error:
		raise ConfigurationError(f"Unknown timezone: {name!r}") from error
	return name


#============================================
def build_standup_settings(settings: dict) -> StandupSettings:
	"""
	Validate a raw settings mapping and apply defaults.
	"""
	lookback_hours = get_setting_int(settings, ["standup", "lookback_hours"], 24)
	if lookback_hours < 1:
		raise ConfigurationError(f"standup.lookback_hours must be positive: {lookback_hours}")
	schedule_hour = get_setting_int(settings, ["schedule", "hour"], 21)
	if not 0 <= schedule_hour <= 23:
		raise ConfigurationError(f"schedule.hour must be 0-23: {schedule_hour}")
	schedule_minute = get_setting_int(settings, ["schedule", "minute"], 0)
	if not 0 <= schedule_minute <= 59:
		raise ConfigurationError(f"schedule.minute must be 0-59: {schedule_minute}")
	max_retries = get_setting_int(settings, ["schedule", "max_rate_limit_retries"], 3)
	if max_retries < 0:
		raise ConfigurationError(f"schedule.max_rate_limit_retries must be >= 0: {max_retries}")
	storage_backend = get_setting_str(settings, ["standup", "storage_backend"], "file").lower()
	if storage_backend not in STORAGE_BACKENDS:
		raise ConfigurationError(
			f"standup.storage_backend must be one of {', '.join(STORAGE_BACKENDS)}: {storage_backend}"
		)
	max_tokens = get_setting_int(settings, ["anthropic", "max_tokens"], 600)
	if max_tokens < 1:
		raise ConfigurationError(f"anthropic.max_tokens must be positive: {max_tokens}")
	temperature = get_setting_float(settings, ["anthropic", "temperature"], 0.4)
	if not 0.0 <= temperature <= 1.0:
		raise ConfigurationError(f"anthropic.temperature must be between 0 and 1: {temperature}")
	timezone_name = validate_timezone(
		get_setting_str(settings, ["schedule", "timezone"], DEFAULT_TIMEZONE) or DEFAULT_TIMEZONE
	)
	storage_dir = get_setting_str(settings, ["standup", "storage_dir"], "") or "standup-data"
	return StandupSettings(
		github_username=get_setting_str(settings, ["github", "username"], ""),
		github_token=get_setting_str(settings, ["github", "token"], ""),
		anthropic_api_key=get_setting_str(settings, ["anthropic", "api_key"], ""),
		anthropic_model=get_setting_str(settings, ["anthropic", "model"], DEFAULT_MODEL) or DEFAULT_MODEL,
		anthropic_api_url=get_setting_str(settings, ["anthropic", "api_url"], DEFAULT_API_URL) or DEFAULT_API_URL,
		max_tokens=max_tokens,
		temperature=temperature,
		lookback_hours=lookback_hours,
		storage_dir=os.path.abspath(storage_dir),
		storage_backend=storage_backend,
		timezone=timezone_name,
		schedule_hour=schedule_hour,
		schedule_minute=schedule_minute,
		run_immediately=get_setting_bool(settings, ["schedule", "run_immediately"], True),
		max_rate_limit_retries=max_retries,
	)


#============================================
def load_standup_settings(path_text: str = DEFAULT_SETTINGS_PATH, environ=None) -> tuple[StandupSettings, str]:
	"""
	Load settings.yaml, apply environment overrides, and validate.
	"""
	if environ is None:
		environ = os.environ
	raw_settings, resolved_path = load_settings(path_text)
	merged = apply_env_overrides(raw_settings, environ)
	return build_standup_settings(merged), resolved_path


#============================================
def require_credentials(settings: StandupSettings) -> None:
	"""
	Raise ConfigurationError naming the first missing identity or credential.
	"""
	if not settings.github_username:
		raise ConfigurationError(
			"Missing GitHub username (settings.yaml github.username or STANDUP_GITHUB_USERNAME)."
		)
	if not settings.github_token:
		raise ConfigurationError("Missing GitHub token (settings.yaml github.token or GITHUB_TOKEN).")
	if not settings.anthropic_api_key:
		raise ConfigurationError(
			"Missing Anthropic API key (settings.yaml anthropic.api_key or ANTHROPIC_API_KEY)."
		)
