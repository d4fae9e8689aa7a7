"""Deployment discovery from CI jobs.

GitLab lists jobs newest first, so the first deploy job seen for an
environment is its latest deployment. Nothing here re-sorts.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .config import HISTORY_RETENTION_DAYS, JOBS_PAGE_SIZE, VERSION_RESOLVE_WORKERS
from .logging_utils import logger
from .models import Deployment, DeploymentHistoryEntry, DeploymentsResult
from .parsers import extract_jira_key, parse_deploy_job_name


DEPLOY_INFO_ARTIFACT = "deploy-info.json"


def parse_iso_safe(s: Optional[str]) -> Optional[datetime]:
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _job_timestamp(job: dict) -> str:
    return job.get("finished_at") or job.get("created_at") or ""


def fallback_version(pipeline_iid: Optional[int]) -> Optional[str]:
    return f"#{pipeline_iid}" if pipeline_iid is not None else None


def deployment_from_job(job: dict, environment: str) -> Deployment:
    pipeline = job.get("pipeline") or {}
    ref = pipeline.get("ref") or job.get("ref") or ""
    return Deployment(
        job_id=job.get("id"),
        job_name=job.get("name") or "",
        environment=environment,
        version=None,
        status=job.get("status") or "",
        timestamp=_job_timestamp(job),
        pipeline_id=pipeline.get("id"),
        pipeline_iid=pipeline.get("iid"),
        pipeline_ref=ref,
        job_url=job.get("web_url") or "",
        pipeline_url=pipeline.get("web_url") or "",
        jira_key=extract_jira_key(ref),
    )


class DeploymentAggregator:
    """Resolves deployments per environment for one GitLab project."""

    def __init__(self, client, *, now=None, max_workers: int = VERSION_RESOLVE_WORKERS):
        self.client = client
        # Injectable clock for the retention window
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.max_workers = max(1, max_workers)

    def resolve_version(self, project_id: int, deployment: Deployment) -> Optional[str]:
        """Version from deploy-info.json, else '#<pipelineIid>'."""
        artifact = self.client.fetch_job_artifact_json(project_id, deployment.job_id, DEPLOY_INFO_ARTIFACT)
        if isinstance(artifact, dict) and artifact.get("version"):
            return str(artifact["version"])
        return fallback_version(deployment.pipeline_iid)

    def _resolve_versions(self, project_id: int, deployments: List[Deployment]) -> None:
        if not deployments:
            return
        workers = min(self.max_workers, len(deployments))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            versions = list(pool.map(lambda d: self.resolve_version(project_id, d), deployments))
        for dep, version in zip(deployments, versions):
            dep.version = version

    def _classified_jobs(self, project_id: int):
        jobs = self.client.list_recent_jobs(project_id, ("success", "failed"), JOBS_PAGE_SIZE)
        for job in jobs:
            env = parse_deploy_job_name(job.get("name"))
            if env:
                yield job, env

    def get_project_deployments(self, project_id: int) -> DeploymentsResult:
        """Latest deployment per environment. Never raises."""
        try:
            latest: Dict[str, Deployment] = {}
            for job, env in self._classified_jobs(project_id):
                if env in latest:
                    continue
                latest[env] = deployment_from_job(job, env)

            self._resolve_versions(project_id, list(latest.values()))
            logger.debug("deployments_resolved", project_id=project_id, environments=sorted(latest))
            return DeploymentsResult(deployments=latest)
        except Exception as e:
            logger.warn("deployments_fetch_failed", project_id=project_id, error=str(e))
            return DeploymentsResult(deployments={}, error=str(e))

    def get_project_deployment_history(self, project_id: int, project_name: str) -> List[DeploymentHistoryEntry]:
        """Every deploy job of the last HISTORY_RETENTION_DAYS days, newest first. Never raises."""
        try:
            cutoff = self._now() - timedelta(days=HISTORY_RETENTION_DAYS)
            entries: List[DeploymentHistoryEntry] = []
            for job, env in self._classified_jobs(project_id):
                ts = parse_iso_safe(_job_timestamp(job))
                if ts is None or ts < cutoff:
                    continue
                base = deployment_from_job(job, env)
                entries.append(DeploymentHistoryEntry(
                    **vars(base),
                    project_id=project_id,
                    project_name=project_name,
                ))

            self._resolve_versions(project_id, entries)
            return entries
        except Exception as e:
            logger.warn("deployment_history_failed", project_id=project_id, error=str(e))
            return []
