"""
Build routes: AI generation, code fixes, site cloning, GitHub pushes and site hosting.
Every coin-consuming endpoint goes through run_metered_action.
"""
import json
import logging
import re
from typing import List, Optional
import requests
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.core.tiers import BL_COSTS, cap_to_json, is_unlimited, resolve_tier
from app.db.session import get_db
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.build import (
    AnalyzeRequest,
    BadgeRemovalRequest,
    CloneAnalyzeRequest,
    CloneRebuildRequest,
    CodeFixRequest,
    DeployRequest,
    FileItem,
    GenerateRequest,
    GitHubPushRequest,
    PwaRequest,
)
from app.services import ai_client, sites
from app.services.file_parser import files_from_response, generate_preview_html
from app.services.github_client import push_files
from app.services.usage_guard import run_metered_action
from app.utils.encryption import decrypt_token

logger = logging.getLogger(__name__)

router = APIRouter()

GEN_PROMPT = """You are ZapCodes AI, an expert full-stack web developer. Generate complete, production-quality websites.

OUTPUT RULES:
1. Output a single complete index.html containing all code
2. All CSS goes in <style> tags in the <head>
3. All JavaScript goes in <script> tags before </body>
4. Start with <!DOCTYPE html> and add no explanation or markdown fences

DESIGN RULES:
1. Modern responsive CSS (variables, flexbox/grid, media queries)
2. Dark mode by default with rich colors and smooth transitions
3. Include every section the user describes, using semantic HTML5
4. Include the meta viewport tag"""

FIX_PROMPT = """You are ZapCodes AI, an expert code debugger. Fix the provided code.

OUTPUT RULES:
1. Output a single complete index.html with all fixes applied
2. All CSS in <style> tags, all JavaScript in <script> tags before </body>
3. Start with <!DOCTYPE html> and add no explanation or markdown fences

FIX RULES:
1. Fix every bug and error you find
2. Return the complete fixed code, not snippets
3. Keep the original structure and style"""

CLONE_PROMPT = """You are ZapCodes AI website analyzer. Analyze the provided website structure and content.

Return ONLY a JSON object:
{"title": "Site title", "type": "portfolio|landing|blog|ecommerce|dashboard|other",
 "sections": ["hero", "about", ...], "colors": {"primary": "#...", "background": "#..."},
 "layout": "short description of the layout", "features": ["..."]}"""

CLONE_SOURCE_LIMIT = 30_000

TEMPLATES = [
    {"id": "custom", "name": "Custom (AI Chat)", "icon": "💬", "desc": "Describe anything"},
    {"id": "portfolio", "name": "Portfolio", "icon": "👤", "desc": "Personal portfolio"},
    {"id": "landing", "name": "Landing Page", "icon": "🚀", "desc": "Product landing"},
    {"id": "blog", "name": "Blog", "icon": "📝", "desc": "Blog template"},
    {"id": "ecommerce", "name": "E-Commerce", "icon": "🛒", "desc": "Online store"},
    {"id": "dashboard", "name": "Dashboard", "icon": "📊", "desc": "Admin dashboard"},
    {"id": "webapp", "name": "Full-Stack App", "icon": "⚡", "desc": "Frontend + backend"},
    {"id": "saas", "name": "SaaS", "icon": "💎", "desc": "SaaS with auth"},
]
TEMPLATE_IDS = {t["id"] for t in TEMPLATES}


def _files(items: List[FileItem]) -> List[dict]:
    return [item.model_dump() for item in items]


def _site_or_404(db: Session, user: User, subdomain: str):
    site = sites.get_site(db, user, subdomain)
    if not site:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Site not found"
        )
    return site


def _metered_payload(outcome) -> dict:
    return {
        "model": outcome.model,
        "blSpent": outcome.cost,
        "balanceRemaining": outcome.balance,
        "dailyUsage": outcome.daily_usage,
    }


def _generation_prompt(request: GenerateRequest) -> str:
    lines = [f"Create a website: {request.prompt or request.description or ''}"]
    if request.template and request.template != "custom":
        lines.append(f"Template: {request.template}")
    lines.append(f"Project name: {request.project_name or 'My Website'}")
    lines.append(f"Color scheme: {request.color_scheme or 'modern dark theme'}")
    if request.features:
        lines.append("Features: " + ", ".join(request.features))
    return "\n".join(lines)


def _check_length(user: User, text: str) -> None:
    """User-typed prompt text is bounded by the plan's max_chars."""
    tier = resolve_tier(user.plan)
    if not is_unlimited(tier.max_chars) and len(text) > tier.max_chars:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Message too long",
                "message": f"Your plan allows {tier.max_chars:,} characters.",
                "maxChars": tier.max_chars,
                "current": len(text),
            }
        )


def _run_generation(db: Session, user: User, user_prompt: str, requested_model: Optional[str]) -> dict:
    def operation(model):
        return files_from_response(ai_client.complete(GEN_PROMPT, user_prompt, model))

    outcome = run_metered_action(db, user, "generation", operation, requested_model=requested_model)
    files = outcome.result
    return {
        "files": files,
        "preview": generate_preview_html(files),
        "fileCount": len(files),
        **_metered_payload(outcome),
    }


def _fetch_page(url: str) -> str:
    if not url.startswith(("http://", "https://")):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="URL must start with http:// or https://"
        )
    try:
        r = requests.get(url, timeout=15, headers={"User-Agent": "ZapCodes-Analyzer/1.0"})
        r.raise_for_status()
    except requests.RequestException as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Could not fetch URL: {e}"
        )
    return r.text


def _parse_clone_analysis(text: str) -> dict:
    match = re.search(r"\{[\s\S]*\}", text)
    if match:
        try:
            parsed = json.loads(match.group(0))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass
    return {"title": "Website", "type": "other", "sections": [], "colors": {}, "layout": text}


@router.get("/costs")
def get_costs():
    return {"costs": BL_COSTS}


@router.get("/templates")
def get_templates():
    return {"templates": TEMPLATES}


@router.post("/generate")
def generate(
    request: GenerateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    input_text = request.prompt or request.description or ""
    if not input_text.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Describe the website you want to build"
        )
    _check_length(user, input_text)
    if request.template and request.template not in TEMPLATE_IDS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown template: {request.template}"
        )

    return _run_generation(db, user, _generation_prompt(request), request.model)


@router.post("/code-fix")
def code_fix(
    request: CodeFixRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not request.files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files to fix"
        )
    file_content = "\n\n".join(f"--- {f.name} ---\n{f.content}" for f in request.files)
    user_prompt = f"Fix these files:\n\n{file_content}\n\nIssue: {request.description or 'Fix all bugs and errors'}"

    def operation(model):
        return files_from_response(ai_client.complete(FIX_PROMPT, user_prompt, model))

    outcome = run_metered_action(db, user, "codeFix", operation, requested_model=request.model)
    files = outcome.result
    return {"files": files, "preview": generate_preview_html(files), **_metered_payload(outcome)}


@router.post("/analyze")
def analyze(
    request: AnalyzeRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Static review of the given files, metered as a code fix."""
    if not request.files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files to analyze"
        )
    files = _files(request.files)
    outcome = run_metered_action(
        db,
        user,
        "codeFix",
        lambda model: ai_client.analyze_code(files, model),
        requested_model=request.model,
        description="Code analysis",
    )
    return {"issues": outcome.result, "issueCount": len(outcome.result), **_metered_payload(outcome)}


@router.post("/clone-analyze")
def clone_analyze(
    request: CloneAnalyzeRequest,
    user: User = Depends(get_current_user),
):
    """
    Describe an existing site (by URL or pasted source) as structured JSON for
    clone-rebuild. Uses the free model and costs no coins.
    """
    content = _fetch_page(request.url) if request.url else (request.code or "")
    if not content.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide a URL or code to analyze"
        )
    try:
        analysis = ai_client.complete(CLONE_PROMPT, content[:CLONE_SOURCE_LIMIT], "groq")
    except Exception as e:
        logger.exception("Clone analysis failed for user %s", user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Analysis failed: {str(e)}"
        )
    if not analysis:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Analysis failed: no response from the AI provider"
        )
    return {"analysis": _parse_clone_analysis(analysis)}


@router.post("/clone-rebuild")
def clone_rebuild(
    request: CloneRebuildRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Generate a new site from a clone-analyze result; metered as a generation."""
    modifications = request.modifications or "Keep faithful to original"
    _check_length(user, modifications)
    user_prompt = (
        "Rebuild this website based on the analysis:\n\n"
        f"{json.dumps(request.analysis)}\n\nUser modifications:\n{modifications}"
    )
    return _run_generation(db, user, user_prompt, request.model)


@router.post("/github-push")
def github_push(
    request: GitHubPushRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not user.github_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Connect GitHub first in Settings"
        )
    if not request.files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files to push"
        )
    token = decrypt_token(user.github_token)
    files = _files(request.files)

    outcome = run_metered_action(
        db,
        user,
        "githubPush",
        lambda model: push_files(token, request.repo_name, files, request.message),
        description=f"GitHub push to {request.repo_name}",
    )
    return {"success": True, "repoUrl": outcome.result, **_metered_payload(outcome)}


@router.post("/deploy")
def deploy(
    request: DeployRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not request.files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No files to deploy"
        )
    return sites.deploy_site(db, user, request.subdomain, _files(request.files), request.title)


@router.post("/pwa")
def build_pwa(
    request: PwaRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    site = _site_or_404(db, user, request.subdomain)

    outcome = run_metered_action(
        db,
        user,
        "pwaBuild",
        lambda model: sites.build_pwa_assets(site, request.app_name, request.theme_color),
        description=f"PWA build for {site.subdomain}",
    )
    sites.mark_pwa(db, site)
    return {
        **outcome.result,
        "blSpent": outcome.cost,
        "balanceRemaining": outcome.balance,
    }


@router.post("/remove-badge")
def remove_badge(
    request: BadgeRemovalRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    site = _site_or_404(db, user, request.subdomain)
    if not site.has_badge:
        return {"message": "Badge already removed", "subdomain": site.subdomain, "hasBadge": False}

    outcome = run_metered_action(
        db,
        user,
        "badgeRemoval",
        lambda model: sites.remove_badge(db, site),
        description=f"Badge removal for {site.subdomain}",
    )
    return {
        "success": True,
        "subdomain": site.subdomain,
        "hasBadge": False,
        "blSpent": outcome.cost,
        "balanceRemaining": outcome.balance,
    }


@router.get("/sites")
def get_sites(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    tier = resolve_tier(user.plan)
    owned = sites.list_sites(db, user)
    return {
        "sites": [site.to_dict() for site in owned],
        "count": len(owned),
        "maxSites": cap_to_json(tier.max_sites),
    }


@router.delete("/site/{subdomain}")
def delete_site(
    subdomain: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    site = _site_or_404(db, user, subdomain)
    sites.delete_site(db, site)
    logger.info("Deleted site %s for %s", subdomain, user.email)
    return {"success": True, "remaining": len(sites.list_sites(db, user))}
