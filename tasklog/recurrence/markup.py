"""Markdown task line codec.

Reads and writes the inline fields a task line carries, e.g.

    - [ ] Water plants recurring::1week wday::[mon,thu] starting::2025-10-01 #tlog/home

Only the fields the recurrence engine needs are understood; everything else
on the line is left as part of the task name. Parsing is deterministic: same
line and `today` -> same result.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from pydantic import ValidationError

from tasklog.models.constants import DEFAULT_TASK_IDENTIFIER
from tasklog.models.recurrence import (
    MonthDays,
    RecurrenceRule,
    RecurrenceUnit,
    WeekDays,
    Weekday,
    YearDates,
)
from tasklog.models.task import TemplateKey
from tasklog.recurrence.errors import RecurrenceParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedTaskLine:
    done: bool
    key: TemplateKey
    due_date: Optional[date]
    eta: Optional[str]
    tags: List[str] = field(default_factory=list)
    rule: Optional[RecurrenceRule] = None  # set for templates only
    occurrence_date: Optional[date] = None  # set when an instance was moved


_CHECKBOX_RE = re.compile(r"^\s*-\s\[( |x)\]\s*")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_RECURRING_RE = re.compile(r"\brecurring::(\S*)")
_PATTERN_RE = re.compile(r"^(\d+)(day|week|month|year)$")
_STARTING_RE = re.compile(r"\bstarting::(\S+)")
_ENDING_RE = re.compile(r"\bending::(\S+)")
_DUE_RE = re.compile(r"\bdue::(\S+)")
_OCCURRENCE_RE = re.compile(r"\boccurrence::(\S+)")
_ETA_RE = re.compile(r"\beta::(\d{1,2}:\d{2})")
# Lookbehinds keep `day::` from matching inside `wday::`
_WDAY_RE = re.compile(r"(?<![\w])wday::\[([^\]]*)\]")
_DAY_RE = re.compile(r"(?<![\w])day::\[([^\]]*)\]")
_MONTH_RE = re.compile(r"(?<![\w])month::\[([^\]]*)\]")
_TAG_RE = re.compile(r"#[\w/]+")

_METADATA_RES = [
    re.compile(r"\bdue::\S+"),
    re.compile(r"\boccurrence::\S+"),
    re.compile(r"\beta::\S+"),
    re.compile(r"\brecurring::\S*"),
    re.compile(r"\bstarting::\S+"),
    re.compile(r"\bending::\S+"),
    _WDAY_RE,
    _DAY_RE,
    _MONTH_RE,
    _TAG_RE,
]

_WEEKDAY_NAMES = {
    "mon": Weekday.MON, "monday": Weekday.MON,
    "tue": Weekday.TUE, "tues": Weekday.TUE, "tuesday": Weekday.TUE,
    "wed": Weekday.WED, "wednesday": Weekday.WED,
    "thu": Weekday.THU, "thur": Weekday.THU, "thurs": Weekday.THU, "thursday": Weekday.THU,
    "fri": Weekday.FRI, "friday": Weekday.FRI,
    "sat": Weekday.SAT, "saturday": Weekday.SAT,
    "sun": Weekday.SUN, "sunday": Weekday.SUN,
}


def parse_iso_date(text: str) -> Optional[date]:
    """Parse YYYY-MM-DD; None for anything else (including impossible dates)."""
    if not _DATE_RE.match(text or ""):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def _split_list(raw: str) -> List[str]:
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


def _parse_weekdays(raw: str) -> WeekDays:
    days = {_WEEKDAY_NAMES[name] for name in _split_list(raw) if name in _WEEKDAY_NAMES}
    return WeekDays(days=frozenset(days))


def _parse_month_days(raw: str) -> MonthDays:
    days = set()
    for item in _split_list(raw):
        if item.isdigit() and 1 <= int(item) <= 31:
            days.add(int(item))
    return MonthDays(days=frozenset(days))


def _parse_year_dates(raw: str) -> YearDates:
    dates = set()
    for item in _split_list(raw):
        m = re.match(r"^(\d{1,2})-(\d{1,2})$", item)
        if not m:
            continue
        month, day = int(m.group(1)), int(m.group(2))
        if 1 <= month <= 12 and 1 <= day <= 31:
            dates.add((month, day))
    return YearDates(dates=frozenset(dates))


def _parse_constraint(line: str, unit: RecurrenceUnit):
    """Pick the constraint field for `unit`; fall back to any other present field.

    An empty or fully unparseable list means no constraint. A field for another
    unit is still attached so the rule reports itself invalid.
    """
    found = {}
    m = _WDAY_RE.search(line)
    if m:
        found[RecurrenceUnit.WEEK] = _parse_weekdays(m.group(1))
    m = _DAY_RE.search(line)
    if m:
        found[RecurrenceUnit.MONTH] = _parse_month_days(m.group(1))
    m = _MONTH_RE.search(line)
    if m:
        found[RecurrenceUnit.YEAR] = _parse_year_dates(m.group(1))

    found = {u: c for u, c in found.items() if len(c) > 0}
    if unit in found:
        return found[unit]
    for other in found.values():
        return other
    return None


def parse_rule_fields(line: str, *, today: date) -> Optional[RecurrenceRule]:
    """Parse the recurrence fields of a line.

    Returns None when the line has no `recurring::` field.

    Raises:
        RecurrenceParseError: a recurrence field is present but malformed.
    """
    m = _RECURRING_RE.search(line)
    if not m:
        return None

    pattern = _PATTERN_RE.match(m.group(1))
    if not pattern:
        raise RecurrenceParseError(f"Invalid recurring pattern: {m.group(1)!r}", field="recurring")
    interval = int(pattern.group(1))
    unit = RecurrenceUnit(pattern.group(2))

    start = today
    m_start = _STARTING_RE.search(line)
    if m_start:
        start = parse_iso_date(m_start.group(1))
        if start is None:
            raise RecurrenceParseError(f"Invalid starting date: {m_start.group(1)!r}", field="starting")

    end = None
    m_end = _ENDING_RE.search(line)
    if m_end and m_end.group(1).lower() != "never":
        end = parse_iso_date(m_end.group(1))
        if end is None:
            raise RecurrenceParseError(f"Invalid ending date: {m_end.group(1)!r}", field="ending")

    try:
        return RecurrenceRule(
            interval=interval,
            unit=unit,
            constraint=_parse_constraint(line, unit),
            start=start,
            end=end,
        )
    except ValidationError as e:
        raise RecurrenceParseError(f"Invalid recurrence: {e.errors()[0]['msg']}") from e


def _find_identifier_tag(tags: List[str], identifier: str) -> Optional[str]:
    return next((t for t in tags if t == identifier or t.startswith(identifier + "/")), None)


def _parse_key(line: str, identifier: str) -> TemplateKey:
    project = section = None
    tag = _find_identifier_tag(_TAG_RE.findall(line), identifier)
    if tag:
        parts = tag[1:].split("/")
        if len(parts) > 1 and parts[1]:
            project = parts[1]
        if len(parts) > 2 and parts[2]:
            section = parts[2]

    name = _CHECKBOX_RE.sub("", line, count=1)
    for pattern in _METADATA_RES:
        name = pattern.sub("", name)
    name = " ".join(name.split())
    return TemplateKey(name=name, project=project, section=section)


def parse_task_line(
    line: str,
    *,
    today: date,
    identifier: str = DEFAULT_TASK_IDENTIFIER,
) -> Optional[ParsedTaskLine]:
    """Parse one markdown line into a task.

    Returns None for lines that are not checkbox items tagged with
    `identifier` (the tag itself or a `identifier/...` path).
    A malformed recurrence is logged and the task is kept without one.
    """
    m = _CHECKBOX_RE.match(line)
    tags = _TAG_RE.findall(line)
    if not m or _find_identifier_tag(tags, identifier) is None:
        return None

    try:
        rule = parse_rule_fields(line, today=today)
    except RecurrenceParseError as e:
        logger.warning(f"Treating task as non-recurring: {e}")
        rule = None

    due = _DUE_RE.search(line)
    occurrence = _OCCURRENCE_RE.search(line)
    eta = _ETA_RE.search(line)
    return ParsedTaskLine(
        done=m.group(1) == "x",
        key=_parse_key(line, identifier),
        due_date=parse_iso_date(due.group(1)) if due else None,
        eta=eta.group(1) if eta else None,
        tags=tags,
        rule=rule,
        occurrence_date=parse_iso_date(occurrence.group(1)) if occurrence else None,
    )


def _identifier_tag(key: TemplateKey, identifier: str) -> str:
    tag = identifier
    if key.project:
        tag += "/" + key.project
        if key.section:
            tag += "/" + key.section
    return tag


def render_rule_fields(rule: RecurrenceRule) -> str:
    parts = [f"recurring::{rule.pattern}", f"starting::{rule.start.isoformat()}"]
    parts.append(f"ending::{rule.end.isoformat()}" if rule.end else "ending::never")

    c = rule.constraint
    if isinstance(c, WeekDays) and len(c):
        parts.append("wday::[" + ",".join(d.value for d in sorted(c.days, key=lambda d: d.number)) + "]")
    elif isinstance(c, MonthDays) and len(c):
        parts.append("day::[" + ",".join(str(d) for d in sorted(c.days)) + "]")
    elif isinstance(c, YearDates) and len(c):
        parts.append("month::[" + ",".join(f"{m:02d}-{d:02d}" for m, d in sorted(c.dates)) + "]")
    return " ".join(parts)


def render_template_line(
    key: TemplateKey,
    rule: RecurrenceRule,
    *,
    eta: Optional[str] = None,
    identifier: str = DEFAULT_TASK_IDENTIFIER,
) -> str:
    line = f"- [ ] {key.name} {render_rule_fields(rule)}"
    if eta:
        line += f" eta::{eta}"
    return f"{line} {_identifier_tag(key, identifier)}"


def render_instance_line(
    key: TemplateKey,
    due_date: date,
    *,
    eta: Optional[str] = None,
    identifier: str = DEFAULT_TASK_IDENTIFIER,
    done: bool = False,
    occurrence_date: Optional[date] = None,
) -> str:
    """Line for a concrete occurrence of a template.

    `occurrence_date` is written only when it differs from `due_date`.
    """
    checkbox = "- [x]" if done else "- [ ]"
    line = f"{checkbox} {key.name} due::{due_date.isoformat()}"
    if occurrence_date is not None and occurrence_date != due_date:
        line += f" occurrence::{occurrence_date.isoformat()}"
    if eta:
        line += f" eta::{eta}"
    return f"{line} {_identifier_tag(key, identifier)}"
