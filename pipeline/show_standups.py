#!/usr/bin/env python3
import argparse
import json
import sys

from standuplib import log_utils
from standuplib import record_store
from standuplib import standup_api
from standuplib import standup_run
from standuplib import standup_settings
from standuplib.errors import StandupError


log_step = log_utils.make_log_fn("show_standups")


#============================================
def parse_args() -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Print saved standups, or generate the latest one on demand."
	)
	parser.add_argument(
		"--settings",
		default=standup_settings.DEFAULT_SETTINGS_PATH,
		help="YAML settings path for defaults.",
	)
	subparsers = parser.add_subparsers(dest="command", required=True)
	subparsers.add_parser("latest", help="Print the latest saved standup.")
	history_parser = subparsers.add_parser("history", help="Print recent standups, newest first.")
	history_parser.add_argument(
		"--limit",
		default=str(standup_api.DEFAULT_API_HISTORY_LIMIT),
		help="Number of standups to print (1-90).",
	)
	subparsers.add_parser("generate", help="Generate and save a standup now.")
	return parser.parse_args()


#============================================
def main() -> int:
	"""
	Dispatch one read or generate command and print its JSON payload.
	"""
	args = parse_args()
	standup_settings.load_env_files()
	try:
		settings, _ = standup_settings.load_standup_settings(args.settings)
	except StandupError as error:
		log_step(f"Configuration error: {error}")
		return 1
	store = record_store.create_record_store(settings)
	if args.command == "latest":
		status, payload = standup_api.get_latest(store)
	elif args.command == "history":
		status, payload = standup_api.get_history(store, args.limit)
	else:
		try:
			standup_settings.require_credentials(settings)
		except StandupError as error:
			status, payload = 400, standup_api.error_payload(error, "Standup is misconfigured")
		else:
			runner = standup_run.create_standup_runner(settings, log_fn=log_step)
			status, payload = standup_api.generate_latest(
				runner,
				settings.github_username,
				settings.lookback_hours,
			)
	print(json.dumps(payload, indent=2, ensure_ascii=False))
	if status >= 400:
		log_step(f"Request failed with status {status}.")
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())
