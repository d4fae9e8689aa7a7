"""Grouping, labelling and filtering of deployment timeline entries."""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from .deployments import parse_iso_safe
from .models import DeploymentHistoryEntry


MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass
class TimelineFilters:
    project_ids: List[int] = field(default_factory=list)
    environments: List[str] = field(default_factory=list)
    # "success", "failed" or "rollback"
    statuses: List[str] = field(default_factory=list)
    date_from: Optional[str] = None
    date_to: Optional[str] = None


def _entry_date(entry: DeploymentHistoryEntry) -> str:
    dt = parse_iso_safe(entry.timestamp)
    return dt.date().isoformat() if dt else "unknown"


def group_by_date(entries: List[DeploymentHistoryEntry]) -> Dict[str, List[DeploymentHistoryEntry]]:
    """ISO day -> entries, newest day first. Entry order inside a day is kept."""
    groups: Dict[str, List[DeploymentHistoryEntry]] = {}
    for entry in entries:
        groups.setdefault(_entry_date(entry), []).append(entry)
    # "unknown" sorts after any digit, push it last explicitly
    ordered = sorted((k for k in groups if k != "unknown"), reverse=True)
    if "unknown" in groups:
        ordered.append("unknown")
    return {k: groups[k] for k in ordered}


def get_date_label(date_str: str, today: Optional[date] = None) -> str:
    if date_str == "unknown":
        return "Unknown Date"
    d = datetime.strptime(date_str, "%Y-%m-%d").date()
    today = today or date.today()
    if d == today:
        return "Today"
    if d == today - timedelta(days=1):
        return "Yesterday"
    return f"{d.day} {MONTHS[d.month - 1]} {d.year}"


def filter_timeline(entries: List[DeploymentHistoryEntry], filters: TimelineFilters) -> List[DeploymentHistoryEntry]:
    out = []
    for entry in entries:
        if filters.project_ids and entry.project_id not in filters.project_ids:
            continue
        if filters.environments and entry.environment not in filters.environments:
            continue
        if filters.statuses:
            entry_status = "rollback" if entry.is_rollback else entry.status
            if entry_status not in filters.statuses:
                continue
        if filters.date_from or filters.date_to:
            day = _entry_date(entry)
            day = "" if day == "unknown" else day
            if filters.date_from and day < filters.date_from:
                continue
            if filters.date_to and day > filters.date_to:
                continue
        out.append(entry)
    return out
