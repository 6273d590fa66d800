#!/usr/bin/env python3
import argparse
import signal
import sys

from standuplib import log_utils
from standuplib import scheduler
from standuplib import standup_run
from standuplib import standup_settings
from standuplib.errors import StandupError


log_step = log_utils.make_log_fn("daily_standup")


#============================================
def parse_args() -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Generate a GitHub pull-request standup every day at a fixed local time."
	)
	parser.add_argument(
		"--settings",
		default=standup_settings.DEFAULT_SETTINGS_PATH,
		help="YAML settings path for defaults.",
	)
	run_group = parser.add_mutually_exclusive_group()
	run_group.add_argument(
		"--run-immediately",
		dest="run_immediately",
		action="store_true",
		default=None,
		help="Run once at startup before waiting for the schedule.",
	)
	run_group.add_argument(
		"--no-run-immediately",
		dest="run_immediately",
		action="store_false",
		help="Wait for the first scheduled slot.",
	)
	return parser.parse_args()


#============================================
def main() -> int:
	"""
	Start the scheduling loop until interrupted.
	"""
	args = parse_args()
	standup_settings.load_env_files()
	try:
		settings, settings_path = standup_settings.load_standup_settings(args.settings)
		standup_settings.require_credentials(settings)
	except StandupError as error:
		log_step(f"Configuration error: {error}")
		return 1
	run_immediately = settings.run_immediately
	if args.run_immediately is not None:
		run_immediately = args.run_immediately
	options = scheduler.ScheduleOptions(
		hour=settings.schedule_hour,
		minute=settings.schedule_minute,
		timezone=settings.timezone,
		run_immediately=run_immediately,
		max_rate_limit_retries=settings.max_rate_limit_retries,
	)
	log_step(f"Using settings file: {settings_path}")
	log_step(
		f"Scheduling standups for @{settings.github_username} at "
		+ f"{options.hour:02d}:{options.minute:02d} {options.timezone} "
		+ f"(lookback {settings.lookback_hours}h)."
	)
	runner = standup_run.create_standup_runner(settings, log_fn=log_step)
	loop = scheduler.StandupScheduler(
		runner,
		settings.github_username,
		settings.lookback_hours,
		options,
		log_fn=log_step,
	)

	def handle_signal(signum, frame):
		log_step(f"Received signal {signum}; stopping after the current step.")
		loop.stop()

	signal.signal(signal.SIGTERM, handle_signal)
	signal.signal(signal.SIGINT, handle_signal)
	try:
		loop.run_forever()
	except StandupError as error:
		log_step(f"Daily standup loop failed: {error}")
		return 1
	log_step("Daily standup loop stopped.")
	return 0


if __name__ == "__main__":
	sys.exit(main())
