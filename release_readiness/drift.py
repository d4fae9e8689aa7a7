"""Version drift: changes deployed to dev that have not reached prod yet."""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from .models import Deployment
from .versions import compare_versions, parse_version


@dataclass
class VersionDrift:
    has_drift: bool
    dev_version: Optional[str]
    prod_version: Optional[str]
    message: Optional[str] = None
    # Patch distance, only when major.minor match
    versions_ahead: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "hasDrift": self.has_drift,
            "devVersion": self.dev_version,
            "prodVersion": self.prod_version,
        }
        if self.message:
            d["message"] = self.message
        if self.versions_ahead is not None:
            d["versionsAhead"] = self.versions_ahead
        return d


def _patch_distance(dev_version: str, prod_version: str) -> Optional[int]:
    dev = parse_version(dev_version)
    prod = parse_version(prod_version)
    if len(dev) < 3 or len(prod) < 3:
        return None
    if dev[:2] != prod[:2]:
        return None
    return dev[2] - prod[2]


def calculate_version_drift(deployments: Optional[Dict[str, Deployment]]) -> VersionDrift:
    """Compare the dev and prod deployments of one project.

    Drift means dev runs a strictly higher version than prod. A missing
    side, or dev at or below prod (a rollback in dev), is no drift.
    """
    deployments = deployments or {}
    dev = deployments.get("dev")
    prod = deployments.get("prod")
    dev_version = dev.version if dev else None
    prod_version = prod.version if prod else None

    if not dev_version or not prod_version:
        return VersionDrift(False, dev_version, prod_version)
    if compare_versions(dev_version, prod_version) <= 0:
        return VersionDrift(False, dev_version, prod_version)

    ahead = _patch_distance(dev_version, prod_version)
    if ahead is not None and ahead > 1:
        message = f"DEV {dev_version} is {ahead} versions ahead of PROD {prod_version}"
    else:
        message = f"DEV {dev_version} is ahead of PROD {prod_version}"
    return VersionDrift(True, dev_version, prod_version, message=message, versions_ahead=ahead)


def count_projects_with_drift(deployments_by_project: Iterable[Optional[Dict[str, Deployment]]]) -> int:
    return sum(1 for deployments in deployments_by_project if calculate_version_drift(deployments).has_drift)
