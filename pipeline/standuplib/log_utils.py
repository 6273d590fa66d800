from datetime import datetime

import rich.console


RICH_CONSOLE = rich.console.Console()


#============================================
def pick_style(message: str) -> str:
	"""
	Choose a console style from keywords in one progress line.
	"""
	lower = message.lower()
	if ("failed" in lower) or ("error" in lower):
		return "bold red"
	if ("rate limit" in lower) or ("retry" in lower) or ("skipping" in lower):
		return "yellow"
	if ("wrote " in lower) or ("complete" in lower) or ("collected" in lower):
		return "green"
	return "cyan"


#============================================
def make_log_fn(component: str, console: rich.console.Console | None = None):
	"""
	Build a log_fn that prints timestamped lines tagged with the component name.
	"""
	target = console if console is not None else RICH_CONSOLE

	def log_step(message: str) -> None:
		now_text = datetime.now().strftime("%H:%M:%S")
		line = f"[{component} {now_text}] {message}"
		target.print(line, style=pick_style(message), markup=False, highlight=False)

	return log_step
