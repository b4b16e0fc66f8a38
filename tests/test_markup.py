"""Tests for the markdown task line codec."""

import pytest
from datetime import date

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
from tasklog.recurrence.markup import (
    parse_iso_date,
    parse_rule_fields,
    parse_task_line,
    render_instance_line,
    render_template_line,
)


TODAY = date(2025, 10, 20)


class TestParseTaskLine:
    """Test parsing whole task lines."""

    def test_template_line(self):
        """Test a recurring line yields key, rule and eta."""
        line = "- [ ] Water plants recurring::1week wday::[mon,thu] starting::2025-10-01 eta::0:15 #tlog/home/garden"
        parsed = parse_task_line(line, today=TODAY)

        assert parsed is not None
        assert parsed.done is False
        assert parsed.key == TemplateKey(name="Water plants", project="home", section="garden")
        assert parsed.eta == "0:15"
        assert parsed.due_date is None
        assert parsed.rule == RecurrenceRule(
            interval=1,
            unit=RecurrenceUnit.WEEK,
            constraint=WeekDays(days=frozenset({Weekday.MON, Weekday.THU})),
            start=date(2025, 10, 1),
        )

    def test_completed_instance_line(self):
        """Test a checked line with a due date."""
        parsed = parse_task_line("- [x] Pay rent due::2025-11-01 #tlog/admin", today=TODAY)

        assert parsed.done is True
        assert parsed.rule is None
        assert parsed.due_date == date(2025, 11, 1)
        assert parsed.key == TemplateKey(name="Pay rent", project="admin")

    def test_non_task_lines_are_ignored(self):
        """Test headings and untagged checkboxes are not tasks."""
        assert parse_task_line("# Tasks", today=TODAY) is None
        assert parse_task_line("- [ ] Not tracked due::2025-10-20", today=TODAY) is None

    def test_custom_identifier(self):
        """Test a different identifier tag selects different lines."""
        line = "- [ ] Stretch recurring::1day #habits/health"
        assert parse_task_line(line, today=TODAY) is None

        parsed = parse_task_line(line, today=TODAY, identifier="#habits")
        assert parsed.key == TemplateKey(name="Stretch", project="health")

    def test_identifier_must_be_a_whole_tag(self):
        """Test a tag that only starts with the identifier does not select the line."""
        assert parse_task_line("- [ ] Read #tlogbook", today=TODAY) is None
        assert parse_task_line("- [ ] Read about #tlog in the wiki", today=TODAY).key == TemplateKey(
            name="Read about in the wiki"
        )

    def test_moved_instance_line(self):
        """Test a moved occurrence keeps the date the rule produced."""
        parsed = parse_task_line(
            "- [ ] Water plants due::2025-10-25 occurrence::2025-10-20 #tlog/home", today=TODAY
        )

        assert parsed.due_date == date(2025, 10, 25)
        assert parsed.occurrence_date == date(2025, 10, 20)
        assert parsed.key == TemplateKey(name="Water plants", project="home")

    def test_malformed_recurrence_keeps_task(self):
        """Test a bad pattern drops only the rule."""
        parsed = parse_task_line("- [ ] Stretch recurring::weekly #tlog", today=TODAY)

        assert parsed is not None
        assert parsed.rule is None
        assert parsed.key.name == "Stretch"


class TestParseRuleFields:
    """Test the recurrence fields of a line."""

    def test_no_recurring_field(self):
        """Test lines without recurring:: have no rule."""
        assert parse_rule_fields("- [ ] Buy milk #tlog", today=TODAY) is None

    def test_defaults(self):
        """Test missing starting:: means today and missing ending:: means never."""
        rule = parse_rule_fields("recurring::3day", today=TODAY)
        assert rule.interval == 3
        assert rule.unit == RecurrenceUnit.DAY
        assert rule.start == TODAY
        assert rule.end is None
        assert rule.constraint is None

    def test_ending(self):
        """Test ending::never and an explicit end date."""
        assert parse_rule_fields("recurring::1day ending::never", today=TODAY).end is None
        rule = parse_rule_fields("recurring::1day ending::2025-12-31", today=TODAY)
        assert rule.end == date(2025, 12, 31)

    def test_long_weekday_names(self):
        """Test full weekday names in any case."""
        rule = parse_rule_fields("recurring::1week wday::[Monday, friday]", today=TODAY)
        assert rule.constraint == WeekDays(days=frozenset({Weekday.MON, Weekday.FRI}))

    def test_month_days(self):
        """Test day:: is not confused with wday::."""
        rule = parse_rule_fields("recurring::1month wday::[mon] day::[1,15]", today=TODAY)
        assert rule.constraint == MonthDays(days=frozenset({1, 15}))
        assert rule.is_valid

    def test_year_dates(self):
        """Test month:: pairs."""
        rule = parse_rule_fields("recurring::1year month::[03-14,12-25]", today=TODAY)
        assert rule.constraint == YearDates(dates=frozenset({(3, 14), (12, 25)}))

    def test_empty_list_means_no_constraint(self):
        """Test an empty or unparseable list is no constraint."""
        assert parse_rule_fields("recurring::1week wday::[]", today=TODAY).constraint is None
        assert parse_rule_fields("recurring::1week wday::[funday]", today=TODAY).constraint is None

    def test_constraint_for_other_unit_is_kept(self):
        """Test a day:: list on a weekly rule makes the rule invalid."""
        rule = parse_rule_fields("recurring::1week day::[5]", today=TODAY)
        assert rule.constraint == MonthDays(days=frozenset({5}))
        assert not rule.is_valid

    @pytest.mark.parametrize("line, field", [
        ("recurring::weekly", "recurring"),
        ("recurring::0xday", "recurring"),
        ("recurring::1day starting::2025-02-30", "starting"),
        ("recurring::1day ending::soon", "ending"),
    ])
    def test_malformed_fields(self, line, field):
        """Test malformed recurrence fields raise with the offending field."""
        with pytest.raises(RecurrenceParseError) as exc_info:
            parse_rule_fields(line, today=TODAY)
        assert exc_info.value.field == field


class TestRender:
    """Test writing lines back."""

    def test_instance_line(self):
        """Test the line written for a materialized occurrence."""
        key = TemplateKey(name="Water plants", project="home", section="garden")
        line = render_instance_line(key, date(2025, 10, 20), eta="0:15")
        assert line == "- [ ] Water plants due::2025-10-20 eta::0:15 #tlog/home/garden"

    def test_completed_instance_line(self):
        """Test the checkbox of a completed occurrence."""
        line = render_instance_line(TemplateKey(name="Pay rent"), date(2025, 11, 1), done=True)
        assert line == "- [x] Pay rent due::2025-11-01 #tlog"

    def test_moved_instance_line(self):
        """Test the occurrence field is written only for a moved due date."""
        key = TemplateKey(name="Water plants", project="home")
        moved = render_instance_line(key, date(2025, 10, 25), occurrence_date=date(2025, 10, 20))
        assert moved == "- [ ] Water plants due::2025-10-25 occurrence::2025-10-20 #tlog/home"

        in_place = render_instance_line(key, date(2025, 10, 20), occurrence_date=date(2025, 10, 20))
        assert in_place == "- [ ] Water plants due::2025-10-20 #tlog/home"

    def test_template_line_reads_back(self):
        """Test a rendered template parses to the same key and rule."""
        key = TemplateKey(name="Water plants", project="home")
        rule = RecurrenceRule(
            interval=2,
            unit=RecurrenceUnit.WEEK,
            constraint=WeekDays(days=frozenset({Weekday.THU, Weekday.MON})),
            start=date(2025, 10, 1),
            end=date(2026, 1, 1),
        )
        line = render_template_line(key, rule)

        assert "wday::[mon,thu]" in line
        parsed = parse_task_line(line, today=TODAY)
        assert parsed.key == key
        assert parsed.rule == rule


def test_parse_iso_date():
    assert parse_iso_date("2025-10-20") == date(2025, 10, 20)
    assert parse_iso_date("2025-02-30") is None
    assert parse_iso_date("20251020") is None
