"""Promotion readiness and deployment history for GitLab projects."""
from .models import (
    Deployment,
    DeploymentHistoryEntry,
    DeploymentsResult,
    PostDeployTestStatus,
    Signoff,
    VersionReadiness,
)
from .drift import VersionDrift, calculate_version_drift, count_projects_with_drift
from .parsers import extract_jira_key, parse_codeowners, parse_deploy_job_name, parse_signoff_comment
from .readiness import calculate_readiness_status
from .rollbacks import detect_rollbacks
from .service import DashboardService

__version__ = "0.1.0"
