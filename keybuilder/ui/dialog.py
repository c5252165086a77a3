"""Terminal UI built on the ``dialog`` program.

dialog draws on the terminal through stdout and reports the user's
selection on stderr, so only stderr is captured. Button presses come back
as exit codes:

    0   OK / Yes
    1   Cancel / No
    2   Help
    3   Extra
    255 ESC

The wizard uses the Extra button as "Back" and the Help button as
"Refresh", see StepOutcome.from_exit_code().
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from keybuilder.domain.models import Advisory, StepOutcome
from keybuilder.logging import LoggerFactory


log = LoggerFactory.for_ui()

# dialog --colors escape sequences
RED = r"\Z1"
GREEN = r"\Z2"
BOLD = r"\Zb"
RESET = r"\Zn"

ADVISORY_COLORS = {"warning": RED, "info": GREEN}


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{RESET}"


def format_advisories(advisories: Iterable[Advisory]) -> str:
    """Render validator advisories, warnings in red and hints in green."""
    return "\n".join(
        colorize(advisory.text, ADVISORY_COLORS.get(advisory.level, RED))
        for advisory in advisories
    )


@dataclass(frozen=True)
class DialogResult:
    exit_code: int
    output: str = ""

    @property
    def outcome(self) -> StepOutcome:
        return StepOutcome.from_exit_code(self.exit_code)

    @property
    def selected_tags(self) -> list[str]:
        """Tags of a checklist run with --separate-output."""
        return [line.strip() for line in self.output.splitlines() if line.strip()]

    @property
    def field_values(self) -> list[str]:
        """Values of a form, one per field in order."""
        return self.output.splitlines()


class DialogRenderer:
    """Runs dialog boxes and returns the button pressed and the selection."""

    def __init__(self, backtitle: str = "", program: str = "dialog"):
        self.backtitle = backtitle
        self.program = program

    def run(self, args: Sequence[str]) -> DialogResult:
        command = [self.program, "--colors"]
        if self.backtitle:
            command += ["--backtitle", self.backtitle]
        command += list(args)
        log.trace(f"Running: {' '.join(command)}")
        try:
            result = subprocess.run(command, stderr=subprocess.PIPE, text=True, check=False)
        except OSError as error:
            log.error(f"Unable to start {self.program}: {error}")
            return DialogResult(exit_code=-1, output=str(error))
        log.debug(f"{args[0] if args else self.program} returned {result.returncode}")
        return DialogResult(exit_code=result.returncode, output=result.stderr or "")

    @staticmethod
    def _buttons(
        ok_label: Optional[str] = None,
        cancel_label: Optional[str] = None,
        extra_label: Optional[str] = None,
        help_label: Optional[str] = None,
        *,
        yesno: bool = False,
    ) -> list[str]:
        args: list[str] = []
        if ok_label:
            args += ["--yes-label" if yesno else "--ok-label", ok_label]
        if cancel_label:
            args += ["--no-label" if yesno else "--cancel-label", cancel_label]
        if extra_label:
            args += ["--extra-button", "--extra-label", extra_label]
        if help_label:
            args += ["--help-button", "--help-label", help_label]
        return args

    def menu(
        self,
        text: str,
        items: Sequence[tuple[str, str]],
        *,
        ok_label: Optional[str] = None,
        cancel_label: Optional[str] = "Quit",
        extra_label: Optional[str] = None,
        help_label: Optional[str] = None,
    ) -> DialogResult:
        args = self._buttons(ok_label, cancel_label, extra_label, help_label)
        args += ["--menu", text, "0", "0", "0"]
        for tag, label in items:
            args += [tag, label]
        return self.run(args)

    def checklist(
        self,
        text: str,
        items: Sequence[tuple[str, str, bool]],
        *,
        ok_label: Optional[str] = None,
        cancel_label: Optional[str] = "Quit",
        extra_label: Optional[str] = None,
    ) -> DialogResult:
        args = ["--separate-output"]
        args += self._buttons(ok_label, cancel_label, extra_label)
        args += ["--checklist", text, "0", "0", "0"]
        for tag, label, selected in items:
            args += [tag, label, "on" if selected else "off"]
        return self.run(args)

    def form(
        self,
        text: str,
        fields: Sequence[tuple[str, str]],
        *,
        ok_label: Optional[str] = None,
        cancel_label: Optional[str] = "Quit",
        extra_label: Optional[str] = None,
        field_width: int = 12,
    ) -> DialogResult:
        label_width = max((len(label) for label, _ in fields), default=0) + 2
        args = self._buttons(ok_label, cancel_label, extra_label)
        args += ["--form", text, "0", "0", str(len(fields))]
        for row, (label, value) in enumerate(fields, start=1):
            args += [
                label, str(row), "1",
                value, str(row), str(label_width), str(field_width), "0",
            ]
        return self.run(args)

    def yesno(
        self,
        text: str,
        *,
        yes_label: Optional[str] = None,
        no_label: Optional[str] = "Quit",
        extra_label: Optional[str] = None,
    ) -> DialogResult:
        args = self._buttons(yes_label, no_label, extra_label, yesno=True)
        args += ["--yesno", text, "0", "0"]
        return self.run(args)

    def msgbox(self, text: str) -> DialogResult:
        return self.run(["--msgbox", text, "0", "0"])

    def infobox(self, text: str) -> DialogResult:
        return self.run(["--infobox", text, "0", "0"])
