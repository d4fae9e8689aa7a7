"""Pure text parsers: deploy job names, ticket keys, sign-off comments, CODEOWNERS.

All grammars live in the pattern block below so a wording change in CI job
names or in the sign-off convention only touches this section.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

from .models import ENVIRONMENT_ORDER as ENVIRONMENTS


# ------------------------------------------------------------
# Grammars
# ------------------------------------------------------------

_ENV_ALT = "|".join(ENVIRONMENTS)

# "deploy-uat", "deploy_prod", "Deploy Dev" or the reverse order "uat-deploy".
# The environment token may not run into more letters ("deploy-production").
DEPLOY_JOB_RE = re.compile(
    rf"deploy[-_ ](?P<env>{_ENV_ALT})(?![a-z0-9])"
    rf"|(?<![a-z0-9])(?P<env_first>{_ENV_ALT})[-_ ]deploy",
    re.IGNORECASE,
)

# Uppercase project prefix, hyphen, digits: "JIRA-123", "ABC2-7"
TICKET_KEY_RE = re.compile(r"([A-Z][A-Z0-9]+-\d+)")

# "SIGNOFF: v2.3.45 UAT" at column zero; tokens separated by spaces/tabs only
SIGNOFF_RE = re.compile(
    r"^SIGNOFF:[ \t]+[vV]?(?P<version>\S+)[ \t]+(?P<env>DEV|SIT|UAT|PROD)(?=\s|$)",
    re.IGNORECASE | re.MULTILINE,
)

# "@jane" at line start or after whitespace (skips e-mail addresses)
CODEOWNER_RE = re.compile(r"(?:^|(?<=\s))@([A-Za-z0-9_.\-]+)")


@dataclass
class ParsedSignoff:
    version: str
    environment: str


def parse_deploy_job_name(name: Optional[str]) -> Optional[str]:
    """Map a CI job name to its environment, or None if it is not a deploy job."""
    if not name:
        return None
    m = DEPLOY_JOB_RE.search(name)
    if not m:
        return None
    return (m.group("env") or m.group("env_first")).lower()


def extract_jira_key(branch: Optional[str]) -> Optional[str]:
    """First ticket key in a branch name: 'feature/JIRA-123-x' -> 'JIRA-123'."""
    if not branch:
        return None
    m = TICKET_KEY_RE.search(branch)
    return m.group(1) if m else None


def parse_signoff_comment(body: Optional[str]) -> Optional[ParsedSignoff]:
    """Parse the first ``SIGNOFF: v<version> <ENV>`` line of a comment."""
    if not body:
        return None
    m = SIGNOFF_RE.search(body)
    if not m:
        return None
    return ParsedSignoff(version=m.group("version"), environment=m.group("env").lower())


def parse_codeowners(content: Optional[str]) -> List[str]:
    """Collect the unique ``@username`` owners of a CODEOWNERS file."""
    owners: List[str] = []
    seen = set()
    for line in (content or "").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        for username in CODEOWNER_RE.findall(stripped):
            if username not in seen:
                seen.add(username)
                owners.append(username)
    return owners
