"""Thin GitLab v4 REST client covering the calls readiness needs.

Two error conventions:
- lookups that may legitimately be absent (job artifacts, repository
  files) return None on any failure;
- listings the caller depends on (jobs, notes, merge requests) raise
  GitLabApiError on non-2xx responses.

No retries: a failed call fails once and the caller decides.
"""
import base64
import urllib.parse
from typing import Any, Dict, Iterable, List, Optional

import requests

from .config import GitLabConfig, JOBS_PAGE_SIZE
from .logging_utils import logger


PAGE_SIZE = 100


class GitLabApiError(RuntimeError):
    """Non-2xx answer from the GitLab API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _encode_path(path: str) -> str:
    # repository/files/:file_path wants the whole path as one segment
    return urllib.parse.quote(path or "", safe="")


def safe_json(resp: requests.Response) -> Any:
    try:
        return resp.json() if resp.content else None
    except ValueError:
        return None


class GitLabClient:
    def __init__(self, cfg: GitLabConfig):
        self.cfg = cfg

    def headers(self) -> Dict[str, str]:
        h = {"Accept": "application/json"}
        if self.cfg.token:
            h["PRIVATE-TOKEN"] = self.cfg.token
        return h

    def _get(self, path: str, params: Any = None) -> requests.Response:
        url = f"{self.cfg.base_url}{path}"
        return requests.get(url, headers=self.headers(), params=params, timeout=self.cfg.timeout)

    def _raise_for(self, resp: requests.Response, what: str) -> None:
        if resp.status_code >= 400:
            raise GitLabApiError(
                f"Error fetching {what}: {resp.reason} ({resp.status_code})",
                status_code=resp.status_code,
            )

    def _get_all_pages(self, path: str, what: str) -> List[dict]:
        # A short page is the last one
        items: List[dict] = []
        page = 1
        while True:
            resp = self._get(path, params={"per_page": PAGE_SIZE, "page": page})
            self._raise_for(resp, what)
            arr = resp.json() or []
            items.extend(arr)
            if len(arr) < PAGE_SIZE:
                break
            page += 1
        return items

    # ------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------

    def list_recent_jobs(
        self,
        project_id: int,
        scope: Iterable[str] = ("success", "failed"),
        per_page: int = JOBS_PAGE_SIZE,
    ) -> List[dict]:
        """GET /projects/:id/jobs, newest first."""
        params: List[tuple] = [("scope[]", s) for s in scope]
        params.append(("per_page", per_page))
        resp = self._get(f"/projects/{project_id}/jobs", params=params)
        self._raise_for(resp, "jobs")
        return resp.json() or []

    def list_pipeline_jobs(self, project_id: int, pipeline_id: int) -> List[dict]:
        """Every job of a pipeline, across pages."""
        return self._get_all_pages(f"/projects/{project_id}/pipelines/{pipeline_id}/jobs", "pipeline jobs")

    def fetch_job_artifact_json(self, project_id: int, job_id: int, path: str) -> Optional[Any]:
        """Return a parsed JSON artifact, or None if absent/unreadable."""
        try:
            resp = self._get(f"/projects/{project_id}/jobs/{job_id}/artifacts/{path}")
        except requests.RequestException as e:
            logger.debug("artifact_request_failed", project_id=project_id, job_id=job_id, error=str(e))
            return None
        if resp.status_code != 200:
            if resp.status_code != 404:
                logger.debug("artifact_http_error", project_id=project_id, job_id=job_id, status=resp.status_code)
            return None
        return safe_json(resp)

    # ------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------

    def fetch_repository_file(self, project_id: int, path: str, ref: str) -> Optional[Dict[str, str]]:
        """Return {"content": <decoded text>} or None if the file cannot be read."""
        try:
            resp = self._get(f"/projects/{project_id}/repository/files/{_encode_path(path)}", params={"ref": ref})
        except requests.RequestException as e:
            logger.debug("repository_file_request_failed", project_id=project_id, path=path, error=str(e))
            return None
        if resp.status_code != 200:
            return None

        data = safe_json(resp)
        if not isinstance(data, dict) or "content" not in data:
            return None
        raw = data.get("content") or ""
        if (data.get("encoding") or "base64") == "base64":
            try:
                raw = base64.b64decode(raw).decode("utf-8", errors="replace")
            except ValueError:
                return None
        return {"content": raw}

    # ------------------------------------------------------------
    # Merge requests
    # ------------------------------------------------------------

    def find_merged_merge_request_by_branch(self, project_id: int, branch: str) -> Optional[dict]:
        resp = self._get(
            f"/projects/{project_id}/merge_requests",
            params={"state": "merged", "source_branch": branch, "per_page": 1},
        )
        self._raise_for(resp, "merge request by branch")
        arr = resp.json() or []
        return arr[0] if arr else None

    def fetch_merge_request_comments(self, project_id: int, mr_iid: int) -> List[dict]:
        """All human notes of an MR (system notes dropped), across pages."""
        notes = self._get_all_pages(f"/projects/{project_id}/merge_requests/{mr_iid}/notes", "MR notes")
        return [n for n in notes if not n.get("system")]
