import pytest
from fastapi.testclient import TestClient

from release_readiness.app import app
from release_readiness.gitlab_client import GitLabApiError
from release_readiness.routes import get_projects, get_service

from conftest import make_job, make_note


@pytest.fixture
def api(dashboard):
    app.dependency_overrides[get_service] = lambda: dashboard
    app.dependency_overrides[get_projects] = lambda: [{"id": 1, "name": "alpha"}, {"id": 2, "name": "beta"}]
    yield TestClient(app)
    app.dependency_overrides.clear()


def seed_alpha(gitlab):
    gitlab.jobs[1] = [
        make_job(12, "deploy-uat", iid=4, ref="feature/JIRA-9", pipeline_id=120, days_ago=1),
        make_job(11, "deploy-uat", iid=3, ref="feature/JIRA-8", pipeline_id=110, days_ago=2),
    ]
    gitlab.artifacts[(1, 12)] = {"version": "1.0.0"}
    gitlab.artifacts[(1, 11)] = {"version": "1.2.0"}
    gitlab.merge_requests[(1, "feature/JIRA-9")] = {"iid": 8, "web_url": "https://x/mr/8", "title": "JIRA-9"}
    gitlab.notes[(1, 8)] = [make_note(1, "SIGNOFF: v1.0.0 UAT", "jane")]


def test_health(api):
    assert api.get("/api/health").json() == {"ok": True, "service": "release-readiness"}


def test_projects(api):
    assert api.get("/api/projects").json() == {"projects": [{"id": 1, "name": "alpha"}, {"id": 2, "name": "beta"}]}


def test_deployments(api, gitlab):
    seed_alpha(gitlab)
    body = api.get("/api/projects/1/deployments").json()
    assert body["projectId"] == 1
    assert body["deployments"]["uat"]["version"] == "1.0.0"
    assert "error" not in body


def test_deployments_error_is_a_payload_not_a_failure(api, gitlab):
    gitlab.fail["list_recent_jobs"] = GitLabApiError("Error fetching jobs: Unauthorized (401)", 401)
    resp = api.get("/api/projects/1/deployments")
    assert resp.status_code == 200
    assert resp.json()["error"] == "Error fetching jobs: Unauthorized (401)"


def test_readiness(api, gitlab):
    seed_alpha(gitlab)
    body = api.get("/api/projects/1/readiness", params={"name": "alpha"}).json()
    [item] = body["readiness"]
    assert item["status"] == "ready"
    assert item["blockers"] == []
    assert "signoffHint" not in item


def test_readiness_pending_includes_hint(api, gitlab):
    seed_alpha(gitlab)
    gitlab.notes[(1, 8)] = []
    [item] = api.get("/api/projects/1/readiness").json()["readiness"]
    assert item["status"] == "pending-signoff"
    assert item["blockers"] == ["Awaiting sign-off from CODEOWNERS"]
    assert item["signoffHint"] == "SIGNOFF: v1.0.0 UAT"


def test_readiness_orchestration_failure_is_502(api, gitlab):
    seed_alpha(gitlab)
    gitlab.fail["fetch_merge_request_comments"] = GitLabApiError("Error fetching MR notes: Forbidden (403)", 403)
    resp = api.get("/api/projects/1/readiness")
    assert resp.status_code == 502
    assert "Forbidden" in resp.json()["detail"]


def test_readiness_job_listing_failure_is_502(api, gitlab):
    gitlab.fail["list_recent_jobs"] = GitLabApiError("Error fetching jobs: Unauthorized (401)", 401)

    resp = api.get("/api/projects/1/readiness")

    assert resp.status_code == 502
    assert "Unauthorized (401)" in resp.json()["detail"]


def test_all_readiness_reports_job_listing_failure(api, gitlab):
    seed_alpha(gitlab)
    gitlab.fail["list_recent_jobs"] = GitLabApiError("Error fetching jobs: Unauthorized (401)", 401)

    body = api.get("/api/readiness").json()

    for project in body["projects"]:
        assert project["readiness"] == []
        assert project["error"] == "Error fetching jobs: Unauthorized (401)"
    assert body["projectsWithDrift"] == 0


def test_readiness_includes_drift(api, gitlab):
    gitlab.jobs[1] = [
        make_job(32, "deploy-dev", iid=9, pipeline_id=320),
        make_job(31, "deploy-prod", iid=5, pipeline_id=310),
    ]
    gitlab.artifacts[(1, 32)] = {"version": "2.3.8"}
    gitlab.artifacts[(1, 31)] = {"version": "2.3.5"}

    body = api.get("/api/projects/1/readiness").json()

    assert [r["environment"] for r in body["readiness"]] == ["dev", "prod"]
    assert body["drift"]["hasDrift"] is True
    assert body["drift"]["versionsAhead"] == 3

    summary = api.get("/api/readiness").json()
    assert summary["projectsWithDrift"] == 1
    assert summary["projects"][0]["drift"]["message"] == "DEV 2.3.8 is 3 versions ahead of PROD 2.3.5"
    assert summary["projects"][1]["drift"]["hasDrift"] is False


def test_all_readiness_isolates_projects(api, gitlab):
    seed_alpha(gitlab)
    gitlab.jobs[2] = [make_job(21, "deploy-dev", iid=1, ref="main", pipeline_id=210)]
    gitlab.merge_requests[(2, "main")] = {"iid": 3, "web_url": "https://x/mr/3", "title": "t"}
    gitlab.fail["fetch_merge_request_comments"] = GitLabApiError("Error fetching MR notes: Forbidden (403)", 403)

    body = api.get("/api/readiness").json()

    assert [p["projectId"] for p in body["projects"]] == [1, 2]
    assert all(p["error"].startswith("Error fetching MR notes") for p in body["projects"])


def test_history_flags_rollback(api, gitlab):
    seed_alpha(gitlab)
    entries = api.get("/api/projects/1/history", params={"name": "alpha"}).json()["entries"]
    # newest first: 1.0.0 replaced 1.2.0
    assert [e["version"] for e in entries] == ["1.0.0", "1.2.0"]
    assert entries[0]["isRollback"] is True
    assert entries[0]["rolledBackFrom"] == "1.2.0"
    assert entries[1]["isRollback"] is False


def test_timeline_filters_rollbacks(api, gitlab):
    seed_alpha(gitlab)
    body = api.post("/api/timeline", json={
        "projects": [{"id": 1, "name": "alpha"}],
        "filters": {"statuses": ["rollback"]},
    }).json()
    assert body["total"] == 2
    assert body["matched"] == 1
    assert body["rollbacks"] == 1
    [day] = body["days"]
    assert day["entries"][0]["jobId"] == 12


def test_refresh_clears_cache(api, gitlab, cache):
    seed_alpha(gitlab)
    api.get("/api/projects/1/readiness")
    assert cache.merge_requests

    assert api.post("/api/readiness/refresh").json()["ok"] is True
    assert cache.merge_requests == {}
    assert cache.codeowners == {}
