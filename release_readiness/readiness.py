"""Promotion readiness: deployment + sign-off + post-deploy tests -> status.

Status priority (first match wins):

    not-deployed     no deployment for the environment
    tests-failed     post-deploy tests exist and failed (outranks sign-off)
    pending-signoff  no sign-off, or the sign-off author is not a code owner
    ready            otherwise

Sign-offs are MR comments of the form ``SIGNOFF: v2.3.45 UAT`` on the
merged MR whose source branch produced the deployment. Authors are checked
against the project's CODEOWNERS; a project without CODEOWNERS accepts
sign-off from anyone.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .logging_utils import logger
from .models import (
    ENVIRONMENT_ORDER,
    STATUS_NOT_DEPLOYED,
    STATUS_PENDING_SIGNOFF,
    STATUS_READY,
    STATUS_TESTS_FAILED,
    Deployment,
    MergeRequestRef,
    PostDeployTestStatus,
    Signoff,
    VersionReadiness,
)
from .parsers import parse_codeowners, parse_signoff_comment


CODEOWNERS_PATHS = ("CODEOWNERS", ".gitlab/CODEOWNERS", "docs/CODEOWNERS")
CODEOWNERS_REF = "HEAD"
POST_DEPLOY_STAGES = ("post-deploy", "post_deploy")


class ReadinessCache:
    """Lookups kept between readiness requests until clear() is called.

    - codeowners: project_id -> list of usernames
    - merge_requests: (project_id, branch) -> merged MR dict

    Only found MRs are kept: a branch without a merged MR is asked again
    on the next request, since its MR may merge in the meantime.
    """

    def __init__(self):
        self.codeowners: Dict[int, List[str]] = {}
        self.merge_requests: Dict[Tuple[int, str], dict] = {}

    def clear(self) -> None:
        self.codeowners.clear()
        self.merge_requests.clear()


# ------------------------------------------------------------
# Post-deploy tests
# ------------------------------------------------------------

def get_post_deploy_test_status(client, project_id: int, pipeline_id: int) -> PostDeployTestStatus:
    jobs = client.list_pipeline_jobs(project_id, pipeline_id)
    post_deploy = [j for j in jobs if (j.get("stage") or "").lower() in POST_DEPLOY_STAGES]
    if not post_deploy:
        return PostDeployTestStatus(exists=False, passed=None)

    # Running/pending jobs neither pass nor fail the check
    completed = [j for j in post_deploy if j.get("status") in ("success", "failed")]
    passed = all(j.get("status") == "success" for j in completed)

    result = PostDeployTestStatus(exists=True, passed=passed)
    if completed:
        first = completed[0]
        result.job_id = first.get("id")
        result.job_url = first.get("web_url")
        result.job_name = first.get("name")
    return result


# ------------------------------------------------------------
# Decision table
# ------------------------------------------------------------

def calculate_readiness_status(
    deployment: Optional[Deployment],
    signoff: Optional[Signoff],
    test_status: Optional[PostDeployTestStatus],
) -> str:
    if deployment is None:
        return STATUS_NOT_DEPLOYED
    if test_status is not None and test_status.exists and test_status.passed is False:
        return STATUS_TESTS_FAILED
    if signoff is None or not signoff.is_valid:
        return STATUS_PENDING_SIGNOFF
    return STATUS_READY


def get_blockers(readiness: VersionReadiness) -> List[str]:
    """What stands between this version and promotion, in display order."""
    blockers = []
    if readiness.status == STATUS_NOT_DEPLOYED:
        blockers.append("Not deployed to this environment")
    if readiness.status == STATUS_TESTS_FAILED:
        blockers.append("Post-deployment tests failed")
    if readiness.status == STATUS_PENDING_SIGNOFF:
        blockers.append("Awaiting sign-off from CODEOWNERS")
    return blockers


def signoff_hint(version: Optional[str], environment: str) -> str:
    """The comment an approver should post for this version."""
    v = (version or "").lstrip("vV")
    return f"SIGNOFF: v{v} {environment.upper()}"


# ------------------------------------------------------------
# Sign-off selection
# ------------------------------------------------------------

def authorize(author: str, codeowners: List[str]) -> str:
    """Return the matching owner ("" if unauthorized). No owners: anyone."""
    if not codeowners:
        return author
    lowered = author.lower()
    for owner in codeowners:
        if owner.lower() == lowered:
            return owner
    return ""


def signoffs_from_notes(notes: List[dict], mr_iid: int, codeowners: List[str]) -> List[Signoff]:
    signoffs = []
    for note in notes:
        if note.get("system"):
            continue
        parsed = parse_signoff_comment(note.get("body"))
        if not parsed:
            continue
        author = ((note.get("author") or {}).get("username") or "")
        authorized_by = authorize(author, codeowners) if author else ""
        signoffs.append(Signoff(
            version=parsed.version,
            environment=parsed.environment,
            author=author,
            authorized_by=authorized_by,
            timestamp=note.get("created_at") or "",
            note_id=note.get("id"),
            mr_iid=mr_iid,
            is_valid=bool(authorized_by),
        ))
    return signoffs


def _normalize_version(v: Optional[str]) -> str:
    return (v or "").strip().lstrip("vV")


def select_signoff(signoffs: List[Signoff], version: Optional[str], environment: str) -> Optional[Signoff]:
    """Pick the sign-off governing ``version`` in ``environment``.

    Order: valid exact version, then any valid sign-off for the environment
    (approval given before a patch bump), then an unauthorized exact match so
    the UI can show who tried. Newest comment wins within each tier.
    """
    for_env = sorted(
        (s for s in signoffs if s.environment == environment),
        key=lambda s: s.timestamp,
        reverse=True,
    )
    wanted = _normalize_version(version)
    exact = [s for s in for_env if _normalize_version(s.version) == wanted]

    for s in exact:
        if s.is_valid:
            return s
    for s in for_env:
        if s.is_valid:
            return s
    return exact[0] if exact else None


# ------------------------------------------------------------
# Orchestration
# ------------------------------------------------------------

@dataclass
class _ReadinessRun:
    """State threaded through one get_project_readiness call."""
    project_id: int
    project_name: str
    codeowners: List[str]
    cache: ReadinessCache


class ReadinessService:
    def __init__(self, client, aggregator, cache: Optional[ReadinessCache] = None):
        self.client = client
        self.aggregator = aggregator
        self.cache = cache if cache is not None else ReadinessCache()

    def get_codeowners(self, project_id: int) -> List[str]:
        cached = self.cache.codeowners.get(project_id)
        if cached is not None:
            return cached

        owners: List[str] = []
        for path in CODEOWNERS_PATHS:
            f = self.client.fetch_repository_file(project_id, path, CODEOWNERS_REF)
            if f is not None:
                owners = parse_codeowners(f.get("content"))
                break
        if not owners:
            logger.debug("codeowners_open_policy", project_id=project_id)

        self.cache.codeowners[project_id] = owners
        return owners

    def _merged_mr_for_branch(self, run: _ReadinessRun, branch: str) -> Optional[dict]:
        if not branch:
            return None
        key = (run.project_id, branch)
        mr = run.cache.merge_requests.get(key)
        if mr is None:
            mr = self.client.find_merged_merge_request_by_branch(run.project_id, branch)
            if mr:
                run.cache.merge_requests[key] = mr
        return mr

    def _environment_readiness(self, run: _ReadinessRun, deployment: Deployment) -> VersionReadiness:
        signoff = None
        mr_ref = None

        mr = self._merged_mr_for_branch(run, deployment.pipeline_ref)
        if mr:
            mr_ref = MergeRequestRef(iid=mr.get("iid"), web_url=mr.get("web_url") or "", title=mr.get("title") or "")
            notes = self.client.fetch_merge_request_comments(run.project_id, mr_ref.iid)
            signoffs = signoffs_from_notes(notes, mr_ref.iid, run.codeowners)
            signoff = select_signoff(signoffs, deployment.version, deployment.environment)

        test_status = get_post_deploy_test_status(self.client, run.project_id, deployment.pipeline_id)
        status = calculate_readiness_status(deployment, signoff, test_status)

        return VersionReadiness(
            project_id=run.project_id,
            project_name=run.project_name,
            version=deployment.version or "",
            environment=deployment.environment,
            deployment=deployment,
            signoff=signoff,
            test_status=test_status,
            status=status,
            mr=mr_ref,
        )

    def get_project_readiness(
        self,
        project_id: int,
        project_name: str,
        deployments_by_env: Optional[Dict[str, Deployment]] = None,
    ) -> List[VersionReadiness]:
        """One readiness verdict per deployed environment, dev -> prod.

        Environments are processed one after another so branches shared
        between environments hit the MR cache. An error in one environment
        propagates and ends the run for the whole project.
        """
        if deployments_by_env is None:
            deployments_by_env = self.aggregator.get_project_deployments(project_id).deployments

        run = _ReadinessRun(
            project_id=project_id,
            project_name=project_name,
            codeowners=self.get_codeowners(project_id),
            cache=self.cache,
        )

        results = []
        for env in ENVIRONMENT_ORDER:
            deployment = deployments_by_env.get(env)
            if deployment is None:
                continue
            results.append(self._environment_readiness(run, deployment))

        logger.info(
            "readiness_computed",
            project_id=project_id,
            statuses={r.environment: r.status for r in results},
        )
        return results
