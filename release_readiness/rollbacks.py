from typing import Dict, Iterable, Optional, Tuple

from .models import DeploymentHistoryEntry
from .versions import compare_versions


def detect_rollbacks(history: Iterable[DeploymentHistoryEntry]) -> None:
    """Flag entries that deployed a lower version than the one before them.

    ``history`` must be oldest first; it is annotated in place. Each
    (project, environment) pair is tracked on its own.

    An entry without a version is never flagged and breaks the chain: the
    next versioned entry of that pair is not compared with anything, so
    [2.0.0, None, 1.0.0] flags nothing. Tracking resumes from that entry.
    """
    last_seen: Dict[Tuple[int, str], Optional[str]] = {}

    for entry in history:
        key = (entry.project_id, entry.environment)
        previous = last_seen.get(key)

        if entry.version is None:
            last_seen[key] = None
            continue

        if previous is not None and compare_versions(entry.version, previous) < 0:
            entry.is_rollback = True
            entry.rolled_back_from = previous

        last_seen[key] = entry.version
