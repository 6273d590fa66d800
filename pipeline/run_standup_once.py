#!/usr/bin/env python3
import argparse
import sys

from standuplib import log_utils
from standuplib import standup_run
from standuplib import standup_settings
from standuplib.errors import StandupError


log_step = log_utils.make_log_fn("run_standup_once")


#============================================
def parse_args() -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Generate one GitHub pull-request standup and save it."
	)
	parser.add_argument(
		"--settings",
		default=standup_settings.DEFAULT_SETTINGS_PATH,
		help="YAML settings path for defaults.",
	)
	parser.add_argument(
		"--hours",
		type=int,
		default=0,
		help="Lookback window in hours (falls back to settings.yaml, then 24).",
	)
	parser.add_argument(
		"--model",
		default="",
		help="Claude model override for this run.",
	)
	return parser.parse_args()


#============================================
def main() -> int:
	"""
	Run one standup and print the summary bullets.
	"""
	args = parse_args()
	standup_settings.load_env_files()
	try:
		settings, settings_path = standup_settings.load_standup_settings(args.settings)
		standup_settings.require_credentials(settings)
	except StandupError as error:
		log_step(f"Configuration error: {error}")
		return 1
	log_step(f"Using settings file: {settings_path}")
	hours = args.hours or settings.lookback_hours
	log_step(f"Running standup for @{settings.github_username} (last {hours}h).")
	runner = standup_run.create_standup_runner(settings, log_fn=log_step)
	try:
		result = runner.run_once(
			settings.github_username,
			hours,
			model_override=args.model or None,
		)
	except StandupError as error:
		log_step(f"Standup run failed: {error}")
		return 1
	log_step("Standup complete. Summary bullets:")
	for bullet in result.summary_bullets:
		print(f"  {bullet}")
	log_step(f"Standup {result.date_key} saved under {settings.storage_dir}.")
	return 0


if __name__ == "__main__":
	sys.exit(main())
