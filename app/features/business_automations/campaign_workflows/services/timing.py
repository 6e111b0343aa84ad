"""
Timing resolver for delay, waitUntil and timeSlot nodes.

Pure functions: given a timing node and "now", return the instant the prospect
may leave the node. All datetimes are naive UTC.
"""

from datetime import datetime, timedelta
from typing import Optional

from app.features.core.clock import to_naive_utc
from app.features.business_automations.campaign_workflows.models import NodeType, TIMING_NODE_TYPES
from app.features.business_automations.campaign_workflows.schemas import (
    DelayConfig,
    TimeSlotConfig,
    WaitUntilConfig,
    parse_node_config,
    resolve_node_type,
)

WEEKDAYS = {"Mon": 0, "Tue": 1, "Wed": 2, "Thu": 3, "Fri": 4, "Sat": 5, "Sun": 6}

# Forward search bound for timeSlot nodes, in days
TIME_SLOT_SEARCH_DAYS = 14

_DELAY_UNITS = {
    "minutes": lambda amount: timedelta(minutes=amount),
    "hours": lambda amount: timedelta(hours=amount),
    "days": lambda amount: timedelta(days=amount),
    "weeks": lambda amount: timedelta(weeks=amount),
}


def is_timing_node(node_type: str) -> bool:
    """True exactly for delay, waitUntil and timeSlot."""
    return resolve_node_type(node_type) in TIMING_NODE_TYPES


def is_ready_to_execute(scheduled_for: Optional[datetime], now: datetime) -> bool:
    """A missing schedule or one in the past (or present) is due."""
    if scheduled_for is None:
        return True
    return now >= scheduled_for


def next_time(node, now: datetime) -> datetime:
    """
    Compute when a prospect entering `node` may proceed.

    Args:
        node: WorkflowNode (anything with .type and .config)
        now: current naive UTC time

    Returns:
        Resume instant; `now` for non-timing nodes

    Raises:
        WorkflowConfigurationError: the node config is invalid for its type
    """
    node_type = resolve_node_type(node.type)
    if node_type not in TIMING_NODE_TYPES:
        return now

    config = parse_node_config(node.type, node.config)

    if node_type == NodeType.DELAY:
        return _resolve_delay(config, now)
    if node_type == NodeType.WAIT_UNTIL:
        return _resolve_wait_until(config, now)
    return _resolve_time_slot(config, now)


def _resolve_delay(config: DelayConfig, now: datetime) -> datetime:
    return now + _DELAY_UNITS[config.unit](config.amount)


def _resolve_wait_until(config: WaitUntilConfig, now: datetime) -> datetime:
    # Past instants are returned as-is; the driver treats them as due.
    if config.wait_until is None:
        return now
    return to_naive_utc(config.wait_until)


def _resolve_time_slot(config: TimeSlotConfig, now: datetime) -> datetime:
    """
    Earliest allowed (weekday, hour) strictly after the current hour.

    Days after the first are searched from midnight. When no slot is found
    within TIME_SLOT_SEARCH_DAYS, the midnight reached at the end of the
    search is returned instead of looping on.
    """
    if not config.hours or not config.days:
        return now

    allowed_days = {WEEKDAYS[day] for day in config.days if day in WEEKDAYS}
    hours = sorted(config.hours)

    candidate = now
    for _ in range(TIME_SLOT_SEARCH_DAYS):
        if candidate.weekday() in allowed_days:
            slot = next((hour for hour in hours if hour > candidate.hour), None)
            if slot is not None:
                return candidate.replace(hour=slot, minute=0, second=0, microsecond=0)

        candidate = (candidate + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)

    return candidate
