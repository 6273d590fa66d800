#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
import subprocess
import sys


def _run(cmd: list[str]) -> int:
    print("+", " ".join(cmd))
    return subprocess.run(cmd, check=False).returncode


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the daily GitHub standup generator.")
    parser.add_argument("--settings", default="settings.yaml", help="YAML settings path.")
    parser.add_argument("--once", action="store_true", help="Generate one standup and exit.")
    parser.add_argument("--no-run-immediately", action="store_true", help="Wait for the first scheduled slot.")
    args = parser.parse_args()

    pipeline_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "pipeline")
    if args.once:
        cmd = [sys.executable, os.path.join(pipeline_dir, "run_standup_once.py"), "--settings", args.settings]
    else:
        cmd = [sys.executable, os.path.join(pipeline_dir, "start_daily_standup.py"), "--settings", args.settings]
        if args.no_run_immediately:
            cmd.append("--no-run-immediately")
    sys.exit(_run(cmd))


if __name__ == "__main__":
    main()
