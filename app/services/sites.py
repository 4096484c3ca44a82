"""
Deployed sites: subdomain rules, per-plan site caps, the "Made with ZapCodes"
badge and PWA assets.
"""
import json
import logging
import os
import re
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import InvalidSubdomain, SiteLimitReached, SubdomainTaken
from app.core.tiers import cap_to_json, resolve_tier, within_cap
from app.models.deployed_site import DeployedSite
from app.models.user import User

logger = logging.getLogger(__name__)

SITES_DOMAIN = os.getenv("SITES_DOMAIN", "zapcodes.net")

SUBDOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9-]{1,48}[a-z0-9]$")

RESERVED_SUBDOMAINS = frozenset({
    "www", "api", "app", "admin", "mail", "ftp", "cdn", "dev", "staging",
    "test", "blog", "docs", "status", "support", "help", "zapcodes", "blendlink",
})

BADGE_HTML = (
    '<div id="zc-badge" style="position:fixed;bottom:10px;right:10px;z-index:99999;'
    "background:linear-gradient(135deg,#6366f1,#8b5cf6);color:#fff;padding:6px 14px;"
    "border-radius:20px;font-family:-apple-system,sans-serif;font-size:12px;font-weight:600;"
    'cursor:pointer" onclick="window.open(\'https://zapcodes.net?ref=badge\',\'_blank\')">'
    "Made with ZapCodes</div>"
)


def normalize_subdomain(subdomain: Optional[str]) -> str:
    """Lowercase and validate; raises InvalidSubdomain."""
    sub = (subdomain or "").strip().lower()
    if not SUBDOMAIN_RE.match(sub):
        raise InvalidSubdomain("Subdomain must be 3-50 lowercase letters, digits and hyphens")
    if sub in RESERVED_SUBDOMAINS:
        raise InvalidSubdomain("This subdomain is reserved")
    return sub


def site_url(subdomain: str) -> str:
    return f"https://{subdomain}.{SITES_DOMAIN}"


def inject_badge(files: List[dict]) -> List[dict]:
    badged = []
    for f in files:
        if f["name"].endswith(".html") and BADGE_HTML not in f["content"]:
            content = f["content"]
            if "</body>" in content:
                content = content.replace("</body>", BADGE_HTML + "</body>", 1)
            else:
                content = content + BADGE_HTML
            badged.append({"name": f["name"], "content": content})
        else:
            badged.append(f)
    return badged


def get_site(db: Session, user: User, subdomain: str) -> Optional[DeployedSite]:
    return (
        db.query(DeployedSite)
        .filter(DeployedSite.user_id == user.id, DeployedSite.subdomain == (subdomain or "").lower())
        .first()
    )


def list_sites(db: Session, user: User) -> List[DeployedSite]:
    return (
        db.query(DeployedSite)
        .filter(DeployedSite.user_id == user.id)
        .order_by(DeployedSite.created_at.asc())
        .all()
    )


def deploy_site(db: Session, user: User, subdomain: str, files: List[dict], title: Optional[str] = None) -> dict:
    """Create or update a site. Subdomains are unique across every account."""
    sub = normalize_subdomain(subdomain)
    tier = resolve_tier(user.plan)
    site = get_site(db, user, sub)

    if site is None:
        owned = db.query(DeployedSite).filter(DeployedSite.user_id == user.id).count()
        if not within_cap(owned, tier.max_sites):
            raise SiteLimitReached(cap_to_json(tier.max_sites))
        taken = (
            db.query(DeployedSite.id)
            .filter(DeployedSite.subdomain == sub, DeployedSite.user_id != user.id)
            .first()
        )
        if taken:
            raise SubdomainTaken()

    # A badge removed by purchase stays removed on redeploy
    if site is not None:
        has_badge = site.has_badge
    else:
        has_badge = tier.plan != "diamond"

    deploy_files = inject_badge(files) if has_badge else files
    file_size = len(json.dumps(files))
    now = datetime.utcnow()

    if site is None:
        site = DeployedSite(
            user_id=user.id,
            subdomain=sub,
            title=title or sub,
            has_badge=has_badge,
            file_size=file_size,
            created_at=now,
            last_updated=now,
        )
        db.add(site)
    else:
        site.title = title or site.title
        site.has_badge = has_badge
        site.file_size = file_size
        site.last_updated = now

    try:
        db.commit()
    except IntegrityError:
        # Another account grabbed the subdomain between the check and the insert
        db.rollback()
        raise SubdomainTaken()

    db.refresh(site)
    sites_count = db.query(DeployedSite).filter(DeployedSite.user_id == user.id).count()
    logger.info("Deployed %s for %s", sub, user.email)
    return {
        "url": site_url(sub),
        "subdomain": sub,
        "deployed": True,
        "hasBadge": site.has_badge,
        "files": deploy_files,
        "sites": sites_count,
        "maxSites": cap_to_json(tier.max_sites),
    }


def delete_site(db: Session, site: DeployedSite) -> None:
    db.delete(site)
    db.commit()


def build_pwa_assets(site: DeployedSite, app_name: Optional[str] = None, theme_color: Optional[str] = None) -> dict:
    name = app_name or site.title or site.subdomain
    manifest = {
        "name": name,
        "short_name": (app_name or site.subdomain)[:12],
        "start_url": "/",
        "display": "standalone",
        "background_color": "#000000",
        "theme_color": theme_color or "#6366f1",
        "icons": [
            {"src": "/icon-192.png", "sizes": "192x192", "type": "image/png"},
            {"src": "/icon-512.png", "sizes": "512x512", "type": "image/png"},
        ],
    }
    service_worker = (
        f"const CACHE='zapcodes-{site.subdomain}-v1';const ASSETS=['/','/index.html'];"
        "self.addEventListener('install',e=>e.waitUntil(caches.open(CACHE).then(c=>c.addAll(ASSETS))));"
        "self.addEventListener('fetch',e=>e.respondWith(caches.match(e.request).then(r=>r||fetch(e.request))));"
    )
    return {"manifest": manifest, "serviceWorker": service_worker}


def mark_pwa(db: Session, site: DeployedSite) -> DeployedSite:
    site.is_pwa = True
    site.last_updated = datetime.utcnow()
    db.commit()
    db.refresh(site)
    return site


def remove_badge(db: Session, site: DeployedSite) -> DeployedSite:
    site.has_badge = False
    site.last_updated = datetime.utcnow()
    db.commit()
    db.refresh(site)
    return site
