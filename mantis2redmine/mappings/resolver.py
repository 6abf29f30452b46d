"""Interactive resolution of source records onto target records.

A resolution proposes a target for every source candidate (label match,
then suggested legend number, then a default) and lets the operator
correct the proposal with a small command language before it is
confirmed:

    ok          confirm the translation
    <old>:<new> map source number <old> onto target number <new>
    <old>:-1    create source number <old> as a new record (where allowed)
    print       show both legends again

Anything else is ignored and the prompt is shown again.
"""

import re
from collections import deque
from collections.abc import Iterable
from enum import StrEnum
from typing import Protocol

from rich.console import Console
from rich.table import Table
from rich.text import Text

from mantis2redmine import config
from mantis2redmine.display import console as default_console
from mantis2redmine.models.mapping import (
    CREATE_NEW,
    Candidate,
    MappingEntry,
    MappingTable,
    TargetOption,
)
from mantis2redmine.models.migration_error import MigrationError, ResolutionInputError
from mantis2redmine.type_definitions import EntityKind

logger = config.logger

CONFIRM = "ok"
PRINT = "print"
OVERRIDE_PATTERN = re.compile(r"^(\d+):(\d+)$")
CREATE_NEW_PATTERN = re.compile(r"^(\d+):-1$")

# Plain styles, so any console can render the tables
SOURCE_STYLE = "bold magenta"
TARGET_STYLE = "bold cyan"
NEW_STYLE = "bold yellow"


class CommandSource(Protocol):
    """Supplies operator commands; receives the prompt text."""

    def __call__(self, prompt: str) -> str: ...


class ConsoleCommandSource:
    """Reads commands from the terminal."""

    def __init__(self, console: Console = default_console) -> None:
        self.console = console

    def __call__(self, prompt: str) -> str:
        return self.console.input(f"{prompt} > ", markup=False)


class ScriptedCommandSource:
    """Replays a fixed list of commands, for tests and scripted runs."""

    def __init__(self, commands: Iterable[str]) -> None:
        self._commands = deque(commands)
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self._commands:
            msg = "Ran out of scripted resolver commands before 'ok'"
            raise MigrationError(msg)
        return self._commands.popleft()


class AcceptAllCommandSource:
    """Confirms every proposal as it is."""

    def __call__(self, prompt: str) -> str:
        return CONFIRM


class SessionState(StrEnum):
    PROPOSED = "proposed"
    OVERRIDDEN = "overridden"
    CONFIRMED = "confirmed"


def premap(
    candidates: Iterable[Candidate],
    options: list[TargetOption],
    default: TargetOption,
) -> dict[int, TargetOption]:
    """Propose a target for every candidate.

    The first option whose label equals the candidate's label, ignoring
    case, wins. Without a match the candidate's suggested legend number
    is used when that option exists, otherwise the default.
    """
    by_key = {option.key: option for option in options}
    proposal: dict[int, TargetOption] = {}
    for candidate in candidates:
        search = candidate.label.lower()
        match = next((option for option in options if option.label.lower() == search), None)
        if match is None and candidate.suggested_key is not None:
            match = by_key.get(candidate.suggested_key)
        proposal[candidate.old_id] = match or default
    return proposal


class ResolutionSession:
    """State of one resolution: proposed, overridden any number of times, confirmed."""

    def __init__(
        self,
        kind: EntityKind,
        candidates: Iterable[Candidate],
        options: Iterable[TargetOption],
        default: TargetOption,
        allow_new: bool = False,
        title: str | None = None,
    ) -> None:
        self.kind = kind
        self.title = title or kind.value
        self.candidates = {c.old_id: c for c in sorted(candidates, key=lambda c: c.old_id)}
        self.options = list(options)
        self.options_by_key = {option.key: option for option in self.options}
        self.default = default
        self.allow_new = allow_new
        self.choices = premap(self.candidates.values(), self.options, default)
        self.state = SessionState.PROPOSED
        self.revision = 0

    def apply(self, command: str) -> SessionState:
        """Apply one operator command and return the resulting state.

        Raises:
            ResolutionInputError: If an override names an unknown number;
                the session is left unchanged

        """
        if self.state is SessionState.CONFIRMED:
            msg = f"{self.title} resolution is already confirmed"
            raise MigrationError(msg)

        command = command.strip()
        if command == CONFIRM:
            self.state = SessionState.CONFIRMED
        elif match := OVERRIDE_PATTERN.match(command):
            old_id, key = int(match.group(1)), int(match.group(2))
            problems = []
            if old_id not in self.candidates:
                problems.append(f"Mantis {self.title} '{old_id}' not defined")
            if key not in self.options_by_key:
                problems.append(f"Redmine {self.title} '{key}' not defined")
            if problems:
                raise ResolutionInputError("\n".join(problems))
            self._choose(old_id, self.options_by_key[key])
        elif self.allow_new and (match := CREATE_NEW_PATTERN.match(command)):
            old_id = int(match.group(1))
            if old_id not in self.candidates:
                msg = f"Mantis {self.title} '{old_id}' not defined"
                raise ResolutionInputError(msg)
            self._choose(old_id, CREATE_NEW)
        return self.state

    def _choose(self, old_id: int, option: TargetOption) -> None:
        self.choices[old_id] = option
        self.state = SessionState.OVERRIDDEN
        self.revision += 1
        logger.debug("%s %s now maps to %s", self.title, old_id, option.label)

    def table(self) -> MappingTable:
        """Build the mapping table for the current choices."""
        entries = {
            old_id: MappingEntry.choose(candidate, self.choices[old_id])
            for old_id, candidate in self.candidates.items()
        }
        return MappingTable(kind=self.kind, entries=entries)

    def prompt(self) -> str:
        lines = [
            "Type 'ok' if you confirm or num:num "
            + ("or num:-1 for create as new " if self.allow_new else "")
            + "to change assignment"
        ]
        if self.candidates:
            last = next(reversed(self.candidates.values()))
            lines.append(
                f"  eg {last.old_id}:{self.default.key} to change {self.title} "
                f"of '{last.label}' to '{self.default.label}'"
            )
        lines.append("  type 'print' to show the Redmine/Mantis tables again")
        lines.append("(ok/num:num/print)")
        return "\n".join(lines)


class MappingResolver:
    """Runs resolution sessions against a command source."""

    def __init__(self, command_source: CommandSource | None = None, console: Console = default_console) -> None:
        self.command_source = command_source or ConsoleCommandSource(console)
        self.console = console

    def resolve(
        self,
        kind: EntityKind,
        candidates: Iterable[Candidate],
        options: Iterable[TargetOption],
        default: TargetOption,
        allow_new: bool = False,
        title: str | None = None,
    ) -> MappingTable:
        """Resolve candidates onto options and return the confirmed table.

        Only talks to the operator; nothing is written to either database.
        """
        session = ResolutionSession(kind, candidates, options, default, allow_new, title)
        self.render_legends(session)
        self.render_translation(session)

        while True:
            command = self.command_source(session.prompt()).strip()
            if command == PRINT:
                self.render_legends(session)
                continue

            revision = session.revision
            try:
                state = session.apply(command)
            except ResolutionInputError as e:
                for line in e.message.splitlines():
                    self.console.print(f"** {line} **", markup=False)
                continue

            if state is SessionState.CONFIRMED:
                break
            if session.revision != revision:
                self.render_translation(session)

        table = session.table()
        logger.info(
            "Resolved %s: %d reused, %d to create",
            session.title,
            len(table.reused_ids()),
            len(table.create_new_ids()),
        )
        return table

    def translate(
        self,
        kind: EntityKind,
        candidates: Iterable[Candidate],
        translation: dict[int, str],
    ) -> MappingTable:
        """Build a table from a fixed translation, without asking anyone.

        The target value is the translated string itself.
        """
        entries = {}
        for candidate in sorted(candidates, key=lambda c: c.old_id):
            value = translation[candidate.old_id]
            entries[candidate.old_id] = MappingEntry(
                old_id=candidate.old_id,
                label=candidate.label,
                target_id=value,
                target_label=value,
                fields=candidate.fields,
            )
        return MappingTable(kind=kind, entries=entries)

    def render_legends(self, session: ResolutionSession) -> None:
        source = Table(title=f"Mantis: {session.title}", show_header=True)
        source.add_column("Name", style=SOURCE_STYLE)
        source.add_column("#", justify="right")
        for candidate in session.candidates.values():
            source.add_row(Text(candidate.label), str(candidate.old_id))

        target = Table(title=f"Redmine: {session.title}", show_header=True)
        target.add_column("Name", style=TARGET_STYLE)
        target.add_column("#", justify="right")
        for option in sorted(session.options, key=lambda o: o.key):
            target.add_row(Text(option.label), str(option.key))

        self.console.print(source)
        self.console.print(target)

    def render_translation(self, session: ResolutionSession) -> None:
        table = Table(title=f"{session.title} translation")
        table.add_column("Mantis", style=SOURCE_STYLE)
        table.add_column("Redmine", style=TARGET_STYLE)
        for old_id, candidate in session.candidates.items():
            choice = session.choices[old_id]
            style = NEW_STYLE if choice.is_create_new else ""
            table.add_row(
                Text(f"{old_id}:{candidate.label}"),
                Text(f"{choice.key}:{choice.label}", style=style),
            )
        self.console.print(table)
