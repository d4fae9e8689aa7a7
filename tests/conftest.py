"""Shared fixtures: an in-memory GitLab stand-in and job/note builders."""
from datetime import datetime, timedelta, timezone

import pytest

from release_readiness.deployments import DeploymentAggregator
from release_readiness.readiness import ReadinessCache, ReadinessService
from release_readiness.service import DashboardService


NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def make_job(job_id, name, *, status="success", stage="deploy", pipeline_id=None, iid=None,
             ref="main", finished_at=None, days_ago=1):
    pipeline_id = pipeline_id if pipeline_id is not None else job_id * 10
    finished = finished_at or iso(NOW - timedelta(days=days_ago))
    return {
        "id": job_id,
        "name": name,
        "stage": stage,
        "status": status,
        "created_at": finished,
        "finished_at": finished,
        "web_url": f"https://gitlab.example.com/p/-/jobs/{job_id}",
        "pipeline": {
            "id": pipeline_id,
            "iid": iid,
            "ref": ref,
            "web_url": f"https://gitlab.example.com/p/-/pipelines/{pipeline_id}",
        },
    }


def make_note(note_id, body, username, *, created_at="2026-02-20T10:00:00Z", system=False):
    return {
        "id": note_id,
        "body": body,
        "author": {"id": note_id, "username": username, "name": username.title()},
        "created_at": created_at,
        "system": system,
    }


class FakeGitLab:
    """Implements the GitLabClient surface over plain dicts and counts calls."""

    def __init__(self):
        self.jobs = {}            # project_id -> [job]
        self.artifacts = {}       # (project_id, job_id) -> dict
        self.files = {}           # (project_id, path) -> str
        self.merge_requests = {}  # (project_id, branch) -> mr dict
        self.notes = {}           # (project_id, mr_iid) -> [note]
        self.pipeline_jobs = {}   # (project_id, pipeline_id) -> [job]
        self.fail = {}            # method name -> exception to raise
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise self.fail[name]

    def count(self, name):
        return sum(1 for c in self.calls if c[0] == name)

    def list_recent_jobs(self, project_id, scope=("success", "failed"), per_page=100):
        self._record("list_recent_jobs", project_id)
        return [j for j in self.jobs.get(project_id, []) if j["status"] in scope][:per_page]

    def fetch_job_artifact_json(self, project_id, job_id, path):
        self._record("fetch_job_artifact_json", project_id, job_id, path)
        return self.artifacts.get((project_id, job_id))

    def fetch_repository_file(self, project_id, path, ref):
        self._record("fetch_repository_file", project_id, path, ref)
        content = self.files.get((project_id, path))
        return {"content": content} if content is not None else None

    def find_merged_merge_request_by_branch(self, project_id, branch):
        self._record("find_merged_merge_request_by_branch", project_id, branch)
        return self.merge_requests.get((project_id, branch))

    def fetch_merge_request_comments(self, project_id, mr_iid):
        self._record("fetch_merge_request_comments", project_id, mr_iid)
        return [n for n in self.notes.get((project_id, mr_iid), []) if not n.get("system")]

    def list_pipeline_jobs(self, project_id, pipeline_id):
        self._record("list_pipeline_jobs", project_id, pipeline_id)
        return self.pipeline_jobs.get((project_id, pipeline_id), [])


@pytest.fixture
def gitlab():
    return FakeGitLab()


@pytest.fixture
def aggregator(gitlab):
    return DeploymentAggregator(gitlab, now=lambda: NOW, max_workers=2)


@pytest.fixture
def cache():
    return ReadinessCache()


@pytest.fixture
def readiness_service(gitlab, aggregator, cache):
    return ReadinessService(gitlab, aggregator, cache)


@pytest.fixture
def dashboard(gitlab, aggregator, cache):
    return DashboardService(gitlab, cache=cache, aggregator=aggregator)
