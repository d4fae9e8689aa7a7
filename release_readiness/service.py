"""Entry point used by the HTTP layer (and anything else presenting readiness)."""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .config import GitLabConfig, VERSION_RESOLVE_WORKERS, load_config_from_env
from .deployments import DeploymentAggregator, parse_iso_safe
from .gitlab_client import GitLabClient
from .logging_utils import logger
from .models import Deployment, DeploymentHistoryEntry, DeploymentsResult, VersionReadiness
from .readiness import ReadinessCache, ReadinessService
from .rollbacks import detect_rollbacks


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _timestamp_key(entry: DeploymentHistoryEntry) -> datetime:
    return parse_iso_safe(entry.timestamp) or _EPOCH


class DashboardService:
    def __init__(self, client, cache: Optional[ReadinessCache] = None, aggregator: Optional[DeploymentAggregator] = None):
        self.client = client
        self.cache = cache if cache is not None else ReadinessCache()
        self.aggregator = aggregator or DeploymentAggregator(client)
        self.readiness = ReadinessService(client, self.aggregator, self.cache)

    @classmethod
    def from_config(cls, cfg: Optional[GitLabConfig] = None) -> "DashboardService":
        return cls(GitLabClient(cfg or load_config_from_env()))

    def get_project_deployments(self, project_id: int) -> DeploymentsResult:
        return self.aggregator.get_project_deployments(project_id)

    def get_project_readiness(
        self,
        project_id: int,
        project_name: str,
        deployments_by_env: Optional[Dict[str, Deployment]] = None,
    ) -> List[VersionReadiness]:
        return self.readiness.get_project_readiness(project_id, project_name, deployments_by_env)

    def get_project_deployment_history(self, project_id: int, project_name: str) -> List[DeploymentHistoryEntry]:
        return self.aggregator.get_project_deployment_history(project_id, project_name)

    def detect_rollbacks(self, history: List[DeploymentHistoryEntry]) -> None:
        detect_rollbacks(history)

    def clear_readiness_cache(self) -> None:
        self.cache.clear()
        logger.info("readiness_cache_cleared")

    def get_timeline(self, projects: List[dict]) -> List[DeploymentHistoryEntry]:
        """History of several projects, rollback-annotated, newest first."""
        if not projects:
            return []
        workers = min(VERSION_RESOLVE_WORKERS, len(projects)) or 1
        with ThreadPoolExecutor(max_workers=workers) as pool:
            histories = list(pool.map(
                lambda p: self.get_project_deployment_history(p["id"], p.get("name") or str(p["id"])),
                projects,
            ))

        entries = [e for h in histories for e in h]
        # Rollback detection needs oldest first; reversing keeps API order for equal timestamps
        entries.reverse()
        entries.sort(key=_timestamp_key)
        self.detect_rollbacks(entries)
        entries.sort(key=_timestamp_key, reverse=True)
        return entries
