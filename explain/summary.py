"""
Decision summary — the response handed back to callers.

Deterministic counterpart of a natural-language explanation: every line of
summary_text is built from the ranked options and the query context, so the
same inputs always produce byte-identical text.

Narrative layout:
  <active constraints joined by "; ">
  [<constraint note when a transfer limit had to be relaxed>]
  <one line per option, top three only>
  [Suggested departure: ...]
  [Live alerts: ...]
"""

import logging

from domain.models import (
    Connection,
    DataCoverage,
    DecisionContext,
    DecisionOption,
    DecisionSummary,
)
from explain.timefmt import format_time
from routing.ranking import rank_connections

logger = logging.getLogger(__name__)

OPTIONS_IN_SUMMARY = 3


def _transfers_phrase(count: int) -> str:
    if count == 0:
        return "direct"
    return f"{count} transfer{'s' if count > 1 else ''}"


def format_option_line(option: DecisionOption, context: DecisionContext, label: str | None = None) -> str:
    """
    One narrative line, e.g.
    "Option A (best): 08:02 -> 08:56 (54 min), 1 transfer, 7 min connection.
     Risk: medium (0.41) (7 min transfer at Olten, 1 transfer)."
    """
    connection_part = ""
    if option.min_transfer_minutes is not None and option.transfers_count > 0:
        connection_part = f", {option.min_transfer_minutes} min connection"

    reasons = f" ({', '.join(option.reasons)})" if option.reasons else ""

    buffer_note = ""
    if context.is_arrival_time and option.arrival_buffer_minutes:
        buffer_note = f" Buffer: {option.arrival_buffer_minutes} min."

    leave_by_note = ""
    if not context.is_arrival_time and option.suggested_leave_by_time:
        leave_by_note = f" Leave by {format_time(option.suggested_leave_by_time)}."

    line = (
        f"{label or option.label}: {format_time(option.departure_time)} -> "
        f"{format_time(option.arrival_time)} ({option.duration_minutes} min), "
        f"{_transfers_phrase(option.transfers_count)}{connection_part}. "
        f"Risk: {option.risk_level} ({option.risk_score:.2f}){reasons}."
        f"{buffer_note}{leave_by_note}"
    )
    return line.strip()


def _constraint_line(context: DecisionContext) -> str:
    parts: list[str] = []
    if context.is_arrival_time:
        parts.append(f"Arrive by {format_time(context.requested_time)}")
        if context.arrival_buffer_minutes:
            parts.append(f"buffer {context.arrival_buffer_minutes} min")
    else:
        parts.append(f"Depart around {format_time(context.requested_time)}")
        if context.departure_buffer_minutes:
            parts.append(f"leave {context.departure_buffer_minutes} min early")

    prefs = context.preferences
    if prefs.max_transfers is not None:
        parts.append(f"max {prefs.max_transfers} transfer{'' if prefs.max_transfers == 1 else 's'}")
    if prefs.prefer_low_walking:
        parts.append("prefer low walking")
    if prefs.minimize_outdoor_if_raining:
        parts.append("minimize outdoor if raining")
    return "; ".join(parts)


def _no_connections_text(context: DecisionContext) -> str:
    return f"No connections found from {context.origin} to {context.destination}."


def build_summary_text(
    options: list[DecisionOption],
    context: DecisionContext,
    constraint_note: str | None = None,
) -> str:
    if not options:
        return _no_connections_text(context)

    lines = [_constraint_line(context)]
    if constraint_note:
        lines.append(constraint_note)

    for index, option in enumerate(options[:OPTIONS_IN_SUMMARY]):
        label = f"{option.label} (best)" if index == 0 else option.label
        lines.append(format_option_line(option, context, label=label))

    top = options[0]
    if context.is_arrival_time:
        buffer = (
            f", buffer {top.arrival_buffer_minutes} min"
            if top.arrival_buffer_minutes else ""
        )
        lines.append(f"Suggested departure: {format_time(top.departure_time)}{buffer}.")
    elif context.departure_buffer_minutes and top.suggested_leave_by_time:
        lines.append(f"Suggested departure: leave by {format_time(top.suggested_leave_by_time)}.")

    alert_parts: list[str] = []
    if top.alerts.delays:
        alert_parts.append(f"delays: {', '.join(top.alerts.delays)}")
    if top.alerts.platform_changes:
        alert_parts.append(f"platform changes: {', '.join(top.alerts.platform_changes)}")
    if alert_parts:
        lines.append(f"Live alerts: {'; '.join(alert_parts)}.")

    return "\n".join(lines)


def build_decision_summary(connections: list[Connection], context: DecisionContext) -> DecisionSummary:
    """
    Rank connections and compose the full decision summary.

    Never raises for a well-formed context: an empty list yields a summary
    with no options and the fixed "no connections" line.
    """
    ranking = rank_connections(connections, context)
    options = ranking.options

    if options:
        summary_text = build_summary_text(options, context, ranking.constraint_note)
    else:
        summary_text = _no_connections_text(context)

    logger.info(
        "Decision summary %s → %s: %d options, recommended=%s.",
        context.origin, context.destination, len(options),
        options[0].id if options else None,
    )
    return DecisionSummary(
        origin=context.origin,
        destination=context.destination,
        requested_time=context.requested_time,
        is_arrival_time=context.is_arrival_time,
        arrival_buffer_minutes=context.arrival_buffer_minutes,
        departure_buffer_minutes=context.departure_buffer_minutes,
        constraints=context.preferences,
        constraint_note=ranking.constraint_note,
        options=options,
        recommended_option_id=options[0].id if options else None,
        summary_text=summary_text,
        data_coverage=DataCoverage(),
    )
