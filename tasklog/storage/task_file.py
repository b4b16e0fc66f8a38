"""Markdown task file store.

Every task is one checkbox line tagged with the task identifier. Templates are
lines carrying `recurring::`; instances are the other lines with a `due::`
date. Refs are zero-based line numbers. New instances are appended to the end
of the file so existing line numbers never shift.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from tasklog.models.constants import DEFAULT_TASK_IDENTIFIER
from tasklog.models.recurrence import RecurrenceRule
from tasklog.models.task import (
    CompletedInstance,
    MaterializedInstance,
    PersistedInstance,
    TemplateKey,
    TemplateTask,
)
from tasklog.recurrence.markup import (
    ParsedTaskLine,
    parse_task_line,
    render_instance_line,
    render_template_line,
)
from tasklog.storage.base import StoreSnapshot

logger = logging.getLogger(__name__)


class MarkdownTaskFile:
    """TaskStore backed by a single markdown file."""

    def __init__(
        self,
        path: Union[str, Path],
        *,
        identifier: str = DEFAULT_TASK_IDENTIFIER,
        today: Callable[[], date] = date.today,
    ):
        self.path = Path(path)
        self.identifier = identifier
        self._today = today

    # Raw file access

    def _read_lines(self) -> List[str]:
        if not self.path.exists():
            logger.warning(f"Task file not found: {self.path}")
            return []
        content = self.path.read_text(encoding="utf-8")
        lines = content.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        return lines

    def _write_lines(self, lines: List[str]) -> None:
        self.path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    def _parse(self, line: str, today: Optional[date] = None) -> Optional[ParsedTaskLine]:
        return parse_task_line(line, today=today or self._today(), identifier=self.identifier)

    # Conversions

    def _to_template(self, parsed: ParsedTaskLine, index: int) -> TemplateTask:
        return TemplateTask(key=parsed.key, rule=parsed.rule, eta=parsed.eta, ref=str(index))

    def _to_instance(self, parsed: ParsedTaskLine, index: int) -> PersistedInstance:
        cls = CompletedInstance if parsed.done else MaterializedInstance
        return cls(
            key=parsed.key,
            due_date=parsed.due_date,
            eta=parsed.eta,
            ref=str(index),
            occurrence_date=parsed.occurrence_date,
        )

    def _parsed_lines(self, today: Optional[date] = None) -> List[Tuple[int, ParsedTaskLine]]:
        out = []
        for index, line in enumerate(self._read_lines()):
            parsed = self._parse(line, today)
            if parsed is not None:
                out.append((index, parsed))
        return out

    @staticmethod
    def _index(ref: str) -> Optional[int]:
        try:
            return int(ref)
        except (TypeError, ValueError):
            return None

    # TaskStore

    def load(self, today: date) -> StoreSnapshot:
        snapshot = StoreSnapshot()
        for index, parsed in self._parsed_lines(today):
            if parsed.rule is not None:
                snapshot.templates.append(self._to_template(parsed, index))
            elif parsed.due_date is not None:
                snapshot.instances.append(self._to_instance(parsed, index))
        return snapshot

    def get_template(self, ref: str) -> Optional[TemplateTask]:
        index = self._index(ref)
        lines = self._read_lines()
        if index is None or not 0 <= index < len(lines):
            return None
        parsed = self._parse(lines[index])
        if parsed is None or parsed.rule is None:
            return None
        return self._to_template(parsed, index)

    def get_instance(self, ref: str) -> Optional[PersistedInstance]:
        index = self._index(ref)
        lines = self._read_lines()
        if index is None or not 0 <= index < len(lines):
            return None
        parsed = self._parse(lines[index])
        if parsed is None or parsed.rule is not None or parsed.due_date is None:
            return None
        return self._to_instance(parsed, index)

    def find_instance(self, key: TemplateKey, occurrence: date) -> Optional[PersistedInstance]:
        for index, parsed in self._parsed_lines():
            if parsed.rule is not None or parsed.due_date is None or parsed.key != key:
                continue
            if (parsed.occurrence_date or parsed.due_date) == occurrence:
                return self._to_instance(parsed, index)
        return None

    def add_template(
        self, key: TemplateKey, rule: RecurrenceRule, *, eta: Optional[str] = None
    ) -> TemplateTask:
        lines = self._read_lines()
        lines.append(render_template_line(key, rule, eta=eta, identifier=self.identifier))
        self._write_lines(lines)
        logger.debug(f"Added template {key.name!r} at line {len(lines) - 1}")
        return TemplateTask(key=key, rule=rule, eta=eta, ref=str(len(lines) - 1))

    def update_template(self, ref: str, rule: RecurrenceRule) -> Optional[TemplateTask]:
        template = self.get_template(ref)
        if template is None:
            return None
        lines = self._read_lines()
        index = int(ref)
        lines[index] = render_template_line(
            template.key, rule, eta=template.eta, identifier=self.identifier
        )
        self._write_lines(lines)
        logger.debug(f"Updated template {template.key.name!r} at line {index}")
        return template.model_copy(update={"rule": rule})

    def insert_instance(
        self, template: TemplateTask, due_date: date, *, done: bool = False
    ) -> PersistedInstance:
        lines = self._read_lines()
        lines.append(
            render_instance_line(
                template.key, due_date, eta=template.eta, identifier=self.identifier, done=done
            )
        )
        self._write_lines(lines)
        index = len(lines) - 1
        logger.debug(f"Appended {template.key.name!r} due {due_date} at line {index}")
        cls = CompletedInstance if done else MaterializedInstance
        return cls(key=template.key, due_date=due_date, eta=template.eta, ref=str(index))

    def _locate(self, lines: List[str], instance: PersistedInstance, *, done: bool) -> int:
        """Line index of `instance`, re-verified against the current file.

        The line at `instance.ref` is checked first; if the file changed
        underneath, the line with the same key, date and checkbox is used.
        """

        def is_target(i: int) -> bool:
            parsed = self._parse(lines[i])
            return (
                parsed is not None
                and parsed.rule is None
                and parsed.done == done
                and parsed.key == instance.key
                and parsed.due_date == instance.due_date
            )

        index = self._index(instance.ref)
        if index is None or not 0 <= index < len(lines) or not is_target(index):
            index = next((i for i in range(len(lines)) if is_target(i)), None)
        if index is None:
            state = "Completed" if done else "Open"
            raise ValueError(f"{state} task {instance.key.name!r} due {instance.due_date} not found")
        return index

    def mark_done(self, instance: MaterializedInstance) -> CompletedInstance:
        lines = self._read_lines()
        index = self._locate(lines, instance, done=False)
        lines[index] = lines[index].replace("- [ ]", "- [x]", 1)
        self._write_lines(lines)
        logger.debug(f"Marked line {index} done")
        return CompletedInstance(**instance.model_dump(exclude={"state", "ref"}), ref=str(index))

    def reopen(self, instance: CompletedInstance) -> MaterializedInstance:
        lines = self._read_lines()
        index = self._locate(lines, instance, done=True)
        lines[index] = lines[index].replace("- [x]", "- [ ]", 1)
        self._write_lines(lines)
        logger.debug(f"Reopened line {index}")
        return MaterializedInstance(**instance.model_dump(exclude={"state", "ref"}), ref=str(index))

    def update_instance(
        self, ref: str, *, due_date: Optional[date] = None, eta: Optional[str] = None
    ) -> Optional[PersistedInstance]:
        """Rewrite an instance line with a new due date and/or eta.

        The line is rebuilt from its parsed fields, like a freshly written
        instance; the first move records the original date as `occurrence::`.
        """
        instance = self.get_instance(ref)
        if instance is None:
            return None

        new_due = due_date or instance.due_date
        new_eta = eta if eta is not None else instance.eta
        lines = self._read_lines()
        index = int(ref)
        lines[index] = render_instance_line(
            instance.key,
            new_due,
            eta=new_eta,
            identifier=self.identifier,
            done=isinstance(instance, CompletedInstance),
            occurrence_date=instance.occurrence,
        )
        self._write_lines(lines)
        logger.debug(f"Updated line {index}: due {new_due}")
        return self.get_instance(ref)
