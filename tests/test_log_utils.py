import io
import os
import sys

import rich.console

# add pipeline directory to path for standuplib imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from standuplib import log_utils


#============================================
def test_pick_style_keywords() -> None:
	"""
	Failures are red, rate limits yellow, completions green.
	"""
	assert log_utils.pick_style("Standup run failed: boom") == "bold red"
	assert log_utils.pick_style("Claude rate limit hit; retry after 60s.") == "yellow"
	assert log_utils.pick_style("Wrote standup for 2026-02-22") == "green"
	assert log_utils.pick_style("Sleeping until 21:00") == "cyan"


#============================================
def test_make_log_fn_prefixes_component() -> None:
	buffer = io.StringIO()
	console = rich.console.Console(file=buffer, force_terminal=False, width=200)
	log_step = log_utils.make_log_fn("daily_standup", console=console)
	log_step("Collected 3 pull request(s) [acme/widgets]")
	output = buffer.getvalue()
	assert output.startswith("[daily_standup ")
	assert "Collected 3 pull request(s) [acme/widgets]" in output
