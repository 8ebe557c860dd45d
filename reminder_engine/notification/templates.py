"""Reminder and oversight content.

The engine only picks the tier; wording escalates from a friendly nudge
on the first reminder to an escalation notice on the final one.
Placeholders use ``string.Template`` syntax and every interpolated value
is HTML-escaped first.
"""
from __future__ import annotations

from dataclasses import dataclass
from html import escape
from string import Template

from reminder_engine.alerts.domain import OversightSummary, Period, Subject
from reminder_engine.alerts.tiers import OversightAction, Tier


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    body: str


_LAYOUT = Template("""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: $accent; padding: 20px; text-align: center; color: white;">
    <h1 style="margin: 0; font-size: 24px;">$heading</h1>
  </div>
  <div style="padding: 30px; background: #f8f9fa;">
    $content
  </div>
</div>
""")

_REMINDER_SUBJECTS: dict[Tier, str] = {
    Tier.FIRST: "Reminder - Time entries for $period_name",
    Tier.SECOND: "Important reminder - Missing time entries for $period_name",
    Tier.THIRD: "URGENT - Time entries not submitted for $period_name",
    Tier.FINAL: "ESCALATION - Missing time entries for $period_name - Immediate action required",
}

_REMINDER_ACCENTS: dict[Tier, str] = {
    Tier.FIRST: "#2196f3",
    Tier.SECOND: "#ff9800",
    Tier.THIRD: "#f44336",
    Tier.FINAL: "#b71c1c",
}

_REMINDER_LEADS: dict[Tier, str] = {
    Tier.FIRST: "Please remember to record your time entries in the application.",
    Tier.SECOND: (
        "We have not yet received your time entries. Your manager has been "
        "copied on this reminder."
    ),
    Tier.THIRD: (
        "Your time entries are still missing. Please record them today; "
        "management has been informed."
    ),
    Tier.FINAL: (
        "This is the final reminder. Your missing time entries have been "
        "escalated to management and require immediate action."
    ),
}

_REMINDER_CONTENT = Template("""\
<h2 style="color: #333;">Hello $user_name,</h2>
<p>The period <strong>$period_name</strong> was activated $days days ago.</p>
<p>$lead</p>
<p style="text-align: center; margin: 30px 0;">
  <a href="$app_url/time-entries" style="padding: 10px 20px; background: $accent; color: white; text-decoration: none;">
    Record my time entries
  </a>
</p>
<p style="color: #666; font-size: 14px;">This message was sent automatically. Please do not reply.</p>
""")

_OVERSIGHT_ROW = Template(
    '<tr><td style="padding: 8px;">$name</td>'
    '<td style="padding: 8px;">$email</td>'
    '<td style="padding: 8px;">$grade</td></tr>'
)

_OVERSIGHT_CONTENT = Template("""\
<h2 style="color: #333;">Hello,</h2>
<p>Missing time entries report for <strong>$period_name</strong>.</p>
<p><strong>STAFF without entries after $days days:</strong> $roster_size people</p>
<table style="width: 100%; border-collapse: collapse; background: white;">
  <thead><tr><th>Name</th><th>Email</th><th>Grade</th></tr></thead>
  <tbody>$rows</tbody>
</table>
<p>
  <strong>Statistics:</strong><br>
  Period: $period_name<br>
  Days since activation: $days<br>
  STAFF without entries: $without of $total<br>
  Compliance rate: $compliance_rate%
</p>
$action_block
""")

_ACTION_REQUIRED = (
    '<div style="background: #f8d7da; border-left: 4px solid #dc3545; padding: 15px;">'
    "<strong>ACTION REQUIRED:</strong> immediate intervention is needed for these staff members."
    "</div>"
)


class TemplateResolver:
    """Render reminder and oversight messages."""

    def __init__(self, app_url: str = "http://localhost:3000", heading: str = "Time Tracking") -> None:
        self.app_url = app_url.rstrip("/")
        self.heading = heading

    def _layout(self, accent: str, content: str) -> str:
        return _LAYOUT.substitute(accent=accent, heading=escape(self.heading), content=content)

    def render(self, tier: Tier, subject: Subject, period: Period, days_since_activation: int) -> RenderedMessage:
        accent = _REMINDER_ACCENTS[tier]
        content = _REMINDER_CONTENT.substitute(
            user_name=escape(subject.name),
            period_name=escape(period.name),
            days=days_since_activation,
            lead=_REMINDER_LEADS[tier],
            app_url=escape(self.app_url),
            accent=accent,
        )
        title = Template(_REMINDER_SUBJECTS[tier]).substitute(period_name=period.name)
        return RenderedMessage(subject=title, body=self._layout(accent, content))

    def render_oversight(self, summary: OversightSummary) -> RenderedMessage:
        rows = "".join(
            _OVERSIGHT_ROW.substitute(
                name=escape(member.name),
                email=escape(member.email),
                grade=escape(member.grade or "-"),
            )
            for member in summary.roster
        )
        escalating = summary.action == OversightAction.ESCALATE
        content = _OVERSIGHT_CONTENT.substitute(
            period_name=escape(summary.period.name),
            days=summary.days_since_activation,
            roster_size=len(summary.roster),
            rows=rows,
            without=summary.staff_without_entries,
            total=summary.total_staff,
            compliance_rate=summary.compliance_rate,
            action_block=_ACTION_REQUIRED if escalating else "",
        )
        prefix = "ESCALATION" if escalating else "REPORT"
        title = f"{prefix} - Missing time entries - Day {summary.days_since_activation}"
        return RenderedMessage(subject=title, body=self._layout(_REMINDER_ACCENTS[summary.tier], content))
