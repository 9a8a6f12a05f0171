"""Fix plan generator: turns classified findings into ordered, non-overlapping edits."""

from __future__ import annotations

import logging
from collections import Counter
from typing import assert_never

from gradlefix.core.models import (
    ClassifiedFinding,
    FixAction,
    FixClass,
    FixPlan,
    ManualReviewItem,
    PlanSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_AUTO_THRESHOLD = 0.75

MINUTES_PER_ACTION = 1
MINUTES_PER_MANUAL_ITEM = 10
MINUTES_PER_UNSAFE_ITEM = 20


class FixPlanGenerator:
    """Builds a FixPlan. Pure: never touches the filesystem."""

    def __init__(self, auto_threshold: float = DEFAULT_AUTO_THRESHOLD):
        if not 0.0 <= auto_threshold <= 1.0:
            raise ValueError(f"auto_threshold must be within [0, 1], got {auto_threshold}")
        self.auto_threshold = auto_threshold

    def generate(self, classified: list[ClassifiedFinding]) -> FixPlan:
        ordered = sorted(classified, key=lambda c: c.finding.sort_key)
        actions: list[FixAction] = []
        manual: list[ManualReviewItem] = []

        for item in ordered:
            fix_class = item.fix_class
            if fix_class is FixClass.AUTO:
                reason = self._auto_rejection(item, actions)
                if reason:
                    manual.append(_manual_item(item, reason))
                    continue
                actions.append(self._make_action(item, len(actions) + 1))
            elif fix_class is FixClass.MANUAL:
                manual.append(_manual_item(item, "manual"))
            elif fix_class is FixClass.UNSAFE:
                manual.append(_manual_item(item, "unsafe"))
            else:
                assert_never(fix_class)

        plan = FixPlan(
            actions=tuple(actions),
            manual_review=tuple(manual),
            summary=_summarize(classified, actions, manual),
            auto_threshold=self.auto_threshold,
        )
        logger.debug(
            "Planned %d actions, %d manual review items", len(actions), len(manual)
        )
        return plan

    def _auto_rejection(self, item: ClassifiedFinding, accepted: list[FixAction]) -> str | None:
        if item.confidence < self.auto_threshold:
            return "below-threshold"
        if not item.finding.replacements:
            return "no-replacement"
        location = item.location
        for action in accepted:
            if action.location.overlaps(location):
                logger.debug("%s overlaps %s", item.finding_id, action.action_id)
                return "overlap"
        return None

    def _make_action(self, item: ClassifiedFinding, number: int) -> FixAction:
        finding = item.finding
        return FixAction(
            action_id=f"A-{number:03d}",
            location=finding.location,
            original_text=finding.matched_text,
            replacement_text=finding.replacements[0],
            source_finding_id=finding.finding_id,
            category=finding.category,
            module=finding.module,
        )


def _manual_item(item: ClassifiedFinding, reason: str) -> ManualReviewItem:
    return ManualReviewItem(
        finding_id=item.finding_id,
        category=item.category,
        location=item.location,
        fix_class=item.fix_class,
        confidence=item.confidence,
        reason=reason,
        message=item.finding.message,
    )


def _line_count(text: str) -> int:
    return len(text.splitlines())


def _summarize(
    classified: list[ClassifiedFinding],
    actions: list[FixAction],
    manual: list[ManualReviewItem],
) -> PlanSummary:
    by_category = Counter(c.category.value for c in classified)
    unsafe = sum(1 for m in manual if m.fix_class is FixClass.UNSAFE)
    minutes = (
        len(actions) * MINUTES_PER_ACTION
        + (len(manual) - unsafe) * MINUTES_PER_MANUAL_ITEM
        + unsafe * MINUTES_PER_UNSAFE_ITEM
    )
    return PlanSummary(
        by_category=dict(sorted(by_category.items())),
        auto_actions=len(actions),
        manual_review=len(manual),
        files_touched=len({a.location.file for a in actions}),
        lines_changed=sum(
            max(_line_count(a.original_text), _line_count(a.replacement_text)) for a in actions
        ),
        estimated_minutes=minutes,
    )


def render_preview(plan: FixPlan) -> str:
    """Plain-text, diff-like rendering of a plan."""
    s = plan.summary
    lines = [
        f"{s.auto_actions} automatic fixes, {s.manual_review} for manual review "
        f"({s.files_touched} files, {s.lines_changed} lines, ~{s.estimated_minutes} min)",
    ]

    current_file = None
    for action in plan.actions:
        if action.location.file != current_file:
            current_file = action.location.file
            lines.append("")
            lines.append(f"--- {current_file}")
            lines.append(f"+++ {current_file}")
        lines.append(
            f"@@ line {action.location.start_line} @@ {action.action_id} "
            f"({action.source_finding_id}, {action.category.value})"
        )
        lines.extend(action.diff.splitlines())

    if plan.manual_review:
        lines.append("")
        lines.append("Manual review:")
        for item in plan.manual_review:
            lines.append(
                f"  {item.finding_id}  {item.location}  {item.fix_class.value} "
                f"{item.confidence:.2f}  [{item.reason}]  {item.message}"
            )
    return "\n".join(lines)
