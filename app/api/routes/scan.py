"""
Repository scan: read a GitHub repository and have the model list its bugs.
A scan is metered like a code fix and also uses one of the plan's scans.
"""
import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.build import ScanRequest
from app.services import ai_client, usage_counter
from app.services.github_client import GitHubError, fetch_repository, parse_github_url
from app.services.usage_guard import run_metered_action
from app.utils.encryption import decrypt_token

logger = logging.getLogger(__name__)

router = APIRouter()

SEVERITIES = ("critical", "high", "medium", "low")


def _scan_stats(issues, files) -> dict:
    stats = {level: sum(1 for issue in issues if issue.get("severity") == level) for level in SEVERITIES}
    stats["totalFiles"] = len(files)
    stats["totalLines"] = sum(len(f["content"].split("\n")) for f in files)
    return stats


@router.post("")
def scan_repository(
    request: ScanRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Scan a GitHub repository. Failed scans refund the coins and the scan."""
    try:
        owner, repo = parse_github_url(request.url)
    except GitHubError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    token = decrypt_token(user.github_token) if user.github_token else None
    fetched = {}

    def operation(model):
        fetched.update(fetch_repository(request.url, token))
        if not fetched["files"]:
            return []
        return ai_client.analyze_code(fetched["files"], model)

    usage_counter.reserve_scan(db, user)
    try:
        outcome = run_metered_action(
            db,
            user,
            "codeFix",
            operation,
            requested_model=request.model,
            description=f"Repository scan {owner}/{repo}",
        )
    except Exception:
        usage_counter.release_scan(db, user)
        raise

    issues = [
        {"id": str(uuid.uuid4()), **issue, "status": "open"}
        for issue in outcome.result
        if isinstance(issue, dict)
    ]
    files = fetched["files"]
    logger.info("Scanned %s/%s for user %s: %s issues", owner, repo, user.id, len(issues))
    return {
        "repo": {
            "owner": owner,
            "name": repo,
            "url": request.url,
            "platform": fetched["platform"],
        },
        "issues": issues,
        "stats": _scan_stats(issues, files),
        "message": f"Found {len(issues)} issues in {repo}",
        "scansUsed": user.scans_used,
        "scansLimit": None if user.scans_limit < 0 else user.scans_limit,
        "model": outcome.model,
        "blSpent": outcome.cost,
        "balanceRemaining": outcome.balance,
        "dailyUsage": outcome.daily_usage,
    }
