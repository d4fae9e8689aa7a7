"""
Readiness API: deployments, promotion readiness, deployment timeline.
All endpoints are read-only against GitLab; the only write is the cache reset.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import requests
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from .config import load_project_configs
from .drift import calculate_version_drift, count_projects_with_drift
from .gitlab_client import GitLabApiError
from .logging_utils import logger
from .models import Deployment
from .readiness import get_blockers, signoff_hint
from .service import DashboardService
from .timeline import TimelineFilters, filter_timeline, get_date_label, group_by_date

router = APIRouter(prefix="/api", tags=["readiness"])

_service: Optional[DashboardService] = None


def get_service() -> DashboardService:
    global _service
    if _service is None:
        _service = DashboardService.from_config()
    return _service


def get_projects() -> List[Dict[str, Any]]:
    return load_project_configs()


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ProjectRef(BaseModel):
    id: int
    name: str = ""


class TimelineFiltersModel(BaseModel):
    projectIds: List[int] = Field(default_factory=list)
    environments: List[str] = Field(default_factory=list)
    statuses: List[str] = Field(default_factory=list)
    dateFrom: Optional[str] = None
    dateTo: Optional[str] = None


class TimelineRequest(BaseModel):
    projects: List[ProjectRef]
    filters: TimelineFiltersModel = Field(default_factory=TimelineFiltersModel)


def _project_status(service: DashboardService, project_id: int, name: str) -> Tuple[Dict[str, Any], Dict[str, Deployment]]:
    """Readiness items and dev/prod drift of one project, plus its deployments.

    A failed job listing is raised rather than shown as "nothing deployed".
    """
    result = service.get_project_deployments(project_id)
    if result.error:
        raise GitLabApiError(result.error)

    items = []
    for r in service.get_project_readiness(project_id, name, result.deployments):
        d = r.to_dict()
        d["blockers"] = get_blockers(r)
        if r.signoff is None or not r.signoff.is_valid:
            d["signoffHint"] = signoff_hint(r.version, r.environment)
        items.append(d)
    payload = {"readiness": items, "drift": calculate_version_drift(result.deployments).to_dict()}
    return payload, result.deployments


# ---------------------------------------------------------------------------
# Projects / deployments
# ---------------------------------------------------------------------------


@router.get("/projects")
def list_projects(projects: List[Dict[str, Any]] = Depends(get_projects)) -> Dict[str, Any]:
    return {"projects": projects}


@router.get("/projects/{project_id}/deployments")
def project_deployments(project_id: int, service: DashboardService = Depends(get_service)) -> Dict[str, Any]:
    result = service.get_project_deployments(project_id)
    return {"projectId": project_id, **result.to_dict()}


@router.get("/projects/{project_id}/history")
def project_history(project_id: int, name: str = "", service: DashboardService = Depends(get_service)) -> Dict[str, Any]:
    entries = service.get_timeline([{"id": project_id, "name": name or str(project_id)}])
    return {"projectId": project_id, "entries": [e.to_dict() for e in entries]}


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


@router.get("/projects/{project_id}/readiness")
def project_readiness(project_id: int, name: str = "", service: DashboardService = Depends(get_service)) -> Dict[str, Any]:
    try:
        status, _ = _project_status(service, project_id, name or str(project_id))
    except (GitLabApiError, requests.RequestException) as e:
        logger.error("readiness_failed", project_id=project_id, error=str(e))
        raise HTTPException(status_code=502, detail=f"Readiness lookup failed: {e}")
    return {
        "projectId": project_id,
        "checkedAt": datetime.now(tz=timezone.utc).isoformat(),
        **status,
    }


@router.get("/readiness")
def all_readiness(
    service: DashboardService = Depends(get_service),
    projects: List[Dict[str, Any]] = Depends(get_projects),
) -> Dict[str, Any]:
    """Readiness of every configured project; one failing project does not hide the others."""
    results = []
    deployed = []
    for p in projects:
        entry: Dict[str, Any] = {"projectId": p["id"], "projectName": p["name"]}
        try:
            payload, deployments = _project_status(service, p["id"], p["name"])
            entry.update(payload)
            deployed.append(deployments)
        except (GitLabApiError, requests.RequestException) as e:
            logger.warn("project_readiness_failed", project_id=p["id"], error=str(e))
            entry["readiness"] = []
            entry["error"] = str(e)
        results.append(entry)
    return {
        "checkedAt": datetime.now(tz=timezone.utc).isoformat(),
        "projectsWithDrift": count_projects_with_drift(deployed),
        "projects": results,
    }


@router.post("/readiness/refresh")
def refresh_readiness(service: DashboardService = Depends(get_service)) -> Dict[str, Any]:
    service.clear_readiness_cache()
    return {"ok": True, "clearedAt": datetime.now(tz=timezone.utc).isoformat()}


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------


@router.post("/timeline")
def timeline(req: TimelineRequest, service: DashboardService = Depends(get_service)) -> Dict[str, Any]:
    entries = service.get_timeline([{"id": p.id, "name": p.name} for p in req.projects])
    f = req.filters
    filtered = filter_timeline(entries, TimelineFilters(
        project_ids=f.projectIds,
        environments=f.environments,
        statuses=f.statuses,
        date_from=f.dateFrom,
        date_to=f.dateTo,
    ))
    days = [
        {"date": day, "label": get_date_label(day), "entries": [e.to_dict() for e in items]}
        for day, items in group_by_date(filtered).items()
    ]
    return {
        "total": len(entries),
        "matched": len(filtered),
        "rollbacks": sum(1 for e in filtered if e.is_rollback),
        "days": days,
    }
