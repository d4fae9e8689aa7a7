import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


DEFAULT_GITLAB_URL = "https://gitlab.com/api/v4"
DEFAULT_PROJECTS_FILE = "configs/projects.yaml"


def _env_any(*names: str) -> Optional[str]:
    """Return first non-empty environment variable value from given names."""
    for n in names:
        v = os.getenv(n)
        if v and str(v).strip():
            return str(v).strip()
    return None


def _env_int(name: str, default: int) -> int:
    raw = _env_any(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Tunables (read once at import)
JOBS_PAGE_SIZE = _env_int("JOBS_PAGE_SIZE", 100)
HISTORY_RETENTION_DAYS = _env_int("HISTORY_RETENTION_DAYS", 30)
VERSION_RESOLVE_WORKERS = _env_int("VERSION_RESOLVE_WORKERS", 8)


@dataclass
class GitLabConfig:
    base_url: str
    token: str
    timeout: float = 30.0


def normalize_base_url(url: str) -> str:
    """'https://gitlab.example.com/' -> 'https://gitlab.example.com/api/v4'."""
    u = (url or "").strip().rstrip("/")
    if not u:
        return DEFAULT_GITLAB_URL
    if not u.startswith(("http://", "https://")):
        u = "https://" + u
    if not u.endswith("/api/v4"):
        u = u + "/api/v4"
    return u


def load_config_from_env() -> GitLabConfig:
    base_url = _env_any("GITLAB_URL", "GITLAB_API_URL") or DEFAULT_GITLAB_URL
    token = _env_any("GITLAB_TOKEN", "GITLAB_PRIVATE_TOKEN") or ""
    try:
        timeout = float(_env_any("GITLAB_TIMEOUT") or 30)
    except ValueError:
        timeout = 30.0
    return GitLabConfig(base_url=normalize_base_url(base_url), token=token, timeout=timeout)


def projects_file_path() -> Path:
    return Path(_env_any("READINESS_PROJECTS_FILE") or DEFAULT_PROJECTS_FILE)


def load_project_configs(path: Optional[Path] = None) -> List[Dict[str, Any]]:
    """Load the dashboard's project list from YAML.

    Expected shape::

        projects:
          - id: 42
            name: alpha-service

    A missing file means no configured projects. Entries without an id are
    rejected so a typo does not silently hide a project.
    """
    p = Path(path) if path else projects_file_path()
    if not p.exists():
        return []

    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid projects config (expected a mapping): {p}")

    projects: List[Dict[str, Any]] = []
    for i, item in enumerate(data.get("projects") or []):
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            raise ValueError(f"Invalid projects config: projects[{i}] needs an id ({p})")
        try:
            project_id = int(item["id"])
        except (TypeError, ValueError):
            raise ValueError(f"Invalid projects config: projects[{i}].id must be numeric ({p})")
        name = str(item.get("name") or project_id).strip()
        projects.append({"id": project_id, "name": name})
    return projects
