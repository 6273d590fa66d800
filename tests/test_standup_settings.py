import os
import sys

import pytest

# add pipeline directory to path for standuplib imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from standuplib import standup_settings
from standuplib.errors import ConfigurationError


#============================================
def test_load_settings_missing_file(tmp_path) -> None:
	"""
	Missing settings file should return empty settings.
	"""
	settings, resolved_path = standup_settings.load_settings(str(tmp_path / "missing.yaml"))
	assert settings == {}
	assert resolved_path.endswith("missing.yaml")


#============================================
def test_load_settings_reads_yaml(tmp_path) -> None:
	"""
	YAML settings should be parsed into nested mapping values.
	"""
	settings_path = tmp_path / "settings.yaml"
	settings_path.write_text(
		"github:\n"
		"  username: alice\n"
		"anthropic:\n"
		"  max_tokens: 999\n",
		encoding="utf-8",
	)
	settings, _ = standup_settings.load_settings(str(settings_path))
	assert standup_settings.get_setting_str(settings, ["github", "username"], "") == "alice"
	assert standup_settings.get_setting_int(settings, ["anthropic", "max_tokens"], 600) == 999


#============================================
def test_load_settings_rejects_non_mapping(tmp_path) -> None:
	settings_path = tmp_path / "settings.yaml"
	settings_path.write_text("- just\n- a list\n", encoding="utf-8")
	with pytest.raises(ConfigurationError):
		standup_settings.load_settings(str(settings_path))


#============================================
def test_get_setting_int_invalid_value_raises() -> None:
	"""
	Invalid integer setting should raise ConfigurationError.
	"""
	settings = {"anthropic": {"max_tokens": "abc"}}
	with pytest.raises(ConfigurationError):
		standup_settings.get_setting_int(settings, ["anthropic", "max_tokens"], 600)


#============================================
def test_get_setting_bool_accepts_text() -> None:
	settings = {"schedule": {"run_immediately": "no"}}
	assert standup_settings.get_setting_bool(settings, ["schedule", "run_immediately"], True) is False
	with pytest.raises(ConfigurationError):
		standup_settings.get_setting_bool({"a": "maybe"}, ["a"], True)


#============================================
def test_defaults_when_empty() -> None:
	"""
	An empty configuration yields the documented defaults.
	"""
	settings = standup_settings.build_standup_settings({})
	assert settings.lookback_hours == 24
	assert settings.timezone == "America/Los_Angeles"
	assert (settings.schedule_hour, settings.schedule_minute) == (21, 0)
	assert settings.run_immediately is True
	assert settings.storage_backend == "file"
	assert settings.storage_dir == os.path.abspath("standup-data")
	assert settings.anthropic_model == standup_settings.DEFAULT_MODEL
	assert settings.max_tokens == 600
	assert settings.temperature == 0.4
	assert settings.max_rate_limit_retries == 3


#============================================
def test_env_overrides_win_over_yaml(tmp_path) -> None:
	"""
	Non-empty environment values replace settings.yaml values.
	"""
	settings_path = tmp_path / "settings.yaml"
	settings_path.write_text(
		"github:\n"
		"  username: alice\n"
		"  token: from-yaml\n"
		"standup:\n"
		"  lookback_hours: 12\n",
		encoding="utf-8",
	)
	environ = {
		"GITHUB_TOKEN": "from-env",
		"ANTHROPIC_API_KEY": "sk-ant-env",
		"STANDUP_LOOKBACK_HOURS": "48",
		"STANDUP_SCHEDULE_HOUR": "7",
		"STANDUP_RUN_IMMEDIATELY": "false",
		"STANDUP_GITHUB_USERNAME": "  ",
	}
	settings, resolved_path = standup_settings.load_standup_settings(str(settings_path), environ=environ)
	assert resolved_path == str(settings_path)
	assert settings.github_username == "alice"
	assert settings.github_token == "from-env"
	assert settings.anthropic_api_key == "sk-ant-env"
	assert settings.lookback_hours == 48
	assert settings.schedule_hour == 7
	assert settings.run_immediately is False


#============================================
def test_apply_env_overrides_does_not_mutate_input() -> None:
	raw = {"github": {"username": "alice"}}
	merged = standup_settings.apply_env_overrides(raw, {"STANDUP_GITHUB_USERNAME": "bob"})
	assert merged["github"]["username"] == "bob"
	assert raw["github"]["username"] == "alice"


#============================================
@pytest.mark.parametrize(
	"raw",
	[
		{"standup": {"lookback_hours": 0}},
		{"schedule": {"hour": 24}},
		{"schedule": {"minute": 60}},
		{"schedule": {"timezone": "Nowhere/Special"}},
		{"standup": {"storage_backend": "supabase"}},
		{"anthropic": {"temperature": 1.5}},
		{"anthropic": {"max_tokens": 0}},
	],
)
def test_invalid_values_raise(raw) -> None:
	with pytest.raises(ConfigurationError):
		standup_settings.build_standup_settings(raw)


#============================================
def test_require_credentials_reports_first_missing() -> None:
	"""
	Username is checked before tokens, and the message names the setting.
	"""
	settings = standup_settings.build_standup_settings({})
	with pytest.raises(ConfigurationError, match="GitHub username"):
		standup_settings.require_credentials(settings)
	settings = standup_settings.build_standup_settings({"github": {"username": "alice"}})
	with pytest.raises(ConfigurationError, match="GITHUB_TOKEN"):
		standup_settings.require_credentials(settings)
	settings = standup_settings.build_standup_settings(
		{"github": {"username": "alice", "token": "ghp_x"}}
	)
	with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
		standup_settings.require_credentials(settings)
	settings = standup_settings.build_standup_settings(
		{"github": {"username": "alice", "token": "ghp_x"}, "anthropic": {"api_key": "sk"}}
	)
	standup_settings.require_credentials(settings)


#============================================
def test_load_env_files_local_overrides(tmp_path, monkeypatch) -> None:
	"""
	.env.local values take precedence over .env values.
	"""
	monkeypatch.delenv("STANDUP_TEST_VALUE", raising=False)
	(tmp_path / ".env").write_text("STANDUP_TEST_VALUE=base\n", encoding="utf-8")
	(tmp_path / ".env.local").write_text("STANDUP_TEST_VALUE=local\n", encoding="utf-8")
	standup_settings.load_env_files(str(tmp_path))
	assert os.environ["STANDUP_TEST_VALUE"] == "local"
	monkeypatch.delenv("STANDUP_TEST_VALUE", raising=False)
