"""Data model for deployments, sign-offs and readiness verdicts.

Attributes are snake_case; ``to_dict()`` gives the camelCase JSON shape the
dashboard UI consumes.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


ENVIRONMENT_ORDER = ("dev", "sit", "uat", "prod")

STATUS_READY = "ready"
STATUS_PENDING_SIGNOFF = "pending-signoff"
STATUS_TESTS_FAILED = "tests-failed"
STATUS_NOT_DEPLOYED = "not-deployed"


@dataclass
class Deployment:
    job_id: int
    job_name: str
    environment: str
    version: Optional[str]
    status: str
    timestamp: str
    pipeline_id: int
    pipeline_iid: Optional[int]
    pipeline_ref: str
    job_url: str
    pipeline_url: str = ""
    jira_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "jobName": self.job_name,
            "environment": self.environment,
            "version": self.version,
            "status": self.status,
            "timestamp": self.timestamp,
            "pipelineId": self.pipeline_id,
            "pipelineIid": self.pipeline_iid,
            "pipelineRef": self.pipeline_ref,
            "jobUrl": self.job_url,
            "pipelineUrl": self.pipeline_url,
            "jiraKey": self.jira_key,
        }


@dataclass
class DeploymentHistoryEntry(Deployment):
    project_id: int = 0
    project_name: str = ""
    is_rollback: bool = False
    rolled_back_from: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({
            "projectId": self.project_id,
            "projectName": self.project_name,
            "isRollback": self.is_rollback,
        })
        if self.rolled_back_from is not None:
            d["rolledBackFrom"] = self.rolled_back_from
        return d


@dataclass
class DeploymentsResult:
    """Latest deployment per environment, or an error message when the listing failed."""
    deployments: Dict[str, Deployment] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "deployments": {env: dep.to_dict() for env, dep in self.deployments.items()},
        }
        if self.error:
            d["error"] = self.error
        return d


@dataclass
class Signoff:
    version: str
    environment: str
    author: str
    authorized_by: str
    timestamp: str
    note_id: int
    mr_iid: int
    is_valid: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "environment": self.environment,
            "author": self.author,
            "authorizedBy": self.authorized_by,
            "timestamp": self.timestamp,
            "noteId": self.note_id,
            "mrIid": self.mr_iid,
            "isValid": self.is_valid,
        }


@dataclass
class PostDeployTestStatus:
    exists: bool
    passed: Optional[bool]
    job_id: Optional[int] = None
    job_url: Optional[str] = None
    job_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"exists": self.exists, "passed": self.passed}
        if self.job_id is not None:
            d["jobId"] = self.job_id
        if self.job_url:
            d["jobUrl"] = self.job_url
        if self.job_name:
            d["jobName"] = self.job_name
        return d


@dataclass
class MergeRequestRef:
    iid: int
    web_url: str
    title: str

    def to_dict(self) -> Dict[str, Any]:
        return {"iid": self.iid, "webUrl": self.web_url, "title": self.title}


@dataclass
class VersionReadiness:
    project_id: int
    project_name: str
    version: str
    environment: str
    deployment: Optional[Deployment]
    signoff: Optional[Signoff]
    test_status: PostDeployTestStatus
    status: str
    mr: Optional[MergeRequestRef] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "projectId": self.project_id,
            "projectName": self.project_name,
            "version": self.version,
            "environment": self.environment,
            "deployment": self.deployment.to_dict() if self.deployment else None,
            "signoff": self.signoff.to_dict() if self.signoff else None,
            "testStatus": self.test_status.to_dict(),
            "status": self.status,
        }
        if self.mr:
            d["mr"] = self.mr.to_dict()
        return d
