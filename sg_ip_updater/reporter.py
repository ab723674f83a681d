"""console progress output."""

import sys

UNDERLINE = "\x1b[4m"
GREEN = "\x1b[32;1m"
RED = "\x1b[31;1m"
RESET = "\x1b[0m"

STATUS_COLORS = {"ok": GREEN, "dry-run": GREEN, "nok": RED, "n/a": RED}


class Reporter:
    """Human readable progress lines.

    A disabled reporter prints nothing, which is what library callers get.
    """

    def __init__(self, enabled=True, stream=None, color=None):
        self.enabled = enabled
        self.stream = stream if stream is not None else sys.stdout
        if color is None:
            color = hasattr(self.stream, "isatty") and self.stream.isatty()
        self.color = color

    def _style(self, text, code):
        if not self.color:
            return text
        return f"{code}{text}{RESET}"

    def write(self, text="", end="\n"):
        if not self.enabled:
            return
        self.stream.write(text + end)
        self.stream.flush()

    def heading(self, text):
        self.write(self._style(text, UNDERLINE))

    def field(self, label, value):
        self.write(self._style(f"{label}:", UNDERLINE), end="")
        self.write(f" {value}")

    def step(self, text, width=42):
        """start a line that a status() call finishes."""
        self.write(f"{text + '...':<{width}}", end="")

    def status(self, tag):
        self.write(f"[ {self._style(tag, STATUS_COLORS.get(tag, ''))} ]")
