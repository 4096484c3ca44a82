"""
Minimal GitHub REST client: create a repository and write files for pushes,
read a repository tree and its files for scans. Public repositories can be
read without a token.
"""
import base64
import logging
import re
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"

GITHUB_URL_RE = re.compile(r"github\.com/([^/]+)/([^/?#]+)")

CODE_EXTENSIONS = (
    ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".kt", ".swift", ".dart", ".rb",
    ".go", ".rs", ".c", ".cpp", ".h", ".cs", ".php", ".vue", ".svelte", ".json",
    ".yaml", ".yml", ".xml", ".gradle", ".toml", ".html", ".css",
)

MAX_SCAN_FILES = 20


class GitHubError(Exception):
    pass


def parse_github_url(url: Optional[str]) -> tuple:
    """'https://github.com/owner/repo(.git)' -> (owner, repo)."""
    match = GITHUB_URL_RE.search(url or "")
    if not match:
        raise GitHubError("Invalid GitHub URL")
    repo = match.group(2)
    if repo.endswith(".git"):
        repo = repo[:-4]
    return match.group(1), repo


def is_code_file(path: str) -> bool:
    return path.endswith(CODE_EXTENSIONS)


def detect_platform(paths: List[str]) -> str:
    if any(p.endswith(".dart") or p.endswith("pubspec.yaml") for p in paths):
        return "flutter"
    if any(p.endswith(".swift") or ".xcodeproj" in p for p in paths):
        return "swift"
    if any(p.endswith(".kt") for p in paths):
        return "kotlin"
    if any(p.endswith(".java") and "android" in p for p in paths):
        return "java-android"
    if any(p.endswith("app.json") for p in paths) and any(p.endswith("package.json") for p in paths):
        return "react-native"
    return "web"


class GitHubClient:
    def __init__(self, token: Optional[str] = None, timeout: int = 30):
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/vnd.github+json"})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        return self.session.request(method, f"{GITHUB_API}{path}", timeout=self.timeout, **kwargs)

    def get_login(self) -> str:
        r = self._request("GET", "/user")
        if r.status_code != 200:
            raise GitHubError(f"Could not read GitHub user ({r.status_code})")
        return r.json()["login"]

    def get_or_create_repo(self, owner: str, name: str) -> dict:
        r = self._request("GET", f"/repos/{owner}/{name}")
        if r.status_code == 200:
            return r.json()
        if r.status_code != 404:
            raise GitHubError(f"Could not read repository {owner}/{name} ({r.status_code})")

        r = self._request("POST", "/user/repos", json={
            "name": name,
            "private": False,
            "auto_init": True,
            "description": "Built with ZapCodes AI",
        })
        if r.status_code not in (200, 201):
            raise GitHubError(f"Could not create repository {name} ({r.status_code})")
        logger.info("Created GitHub repository %s/%s", owner, name)
        return r.json()

    def get_tree(self, owner: str, repo: str, branch: Optional[str] = None) -> List[str]:
        """Paths of code files in the repository, main branch first, then master."""
        for ref in ([branch] if branch else ["main", "master"]):
            r = self._request("GET", f"/repos/{owner}/{repo}/git/trees/{ref}", params={"recursive": "1"})
            if r.status_code == 200:
                return [
                    entry["path"]
                    for entry in r.json().get("tree", [])
                    if entry.get("type") == "blob" and is_code_file(entry["path"])
                ]
        raise GitHubError(f"Could not read repository {owner}/{repo} ({r.status_code})")

    def get_file(self, owner: str, repo: str, path: str) -> Optional[str]:
        """Decoded file content, or None when it cannot be read."""
        r = self._request("GET", f"/repos/{owner}/{repo}/contents/{path.lstrip('/')}")
        if r.status_code != 200:
            return None
        data = r.json()
        if not isinstance(data, dict) or not data.get("content"):
            return None
        try:
            return base64.b64decode(data["content"]).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            logger.info("Skipping undecodable file %s/%s:%s", owner, repo, path)
            return None

    def get_file_sha(self, owner: str, repo: str, path: str) -> Optional[str]:
        r = self._request("GET", f"/repos/{owner}/{repo}/contents/{path}")
        if r.status_code == 200:
            return r.json().get("sha")
        return None

    def put_file(self, owner: str, repo: str, path: str, content: str, message: str, sha: Optional[str] = None) -> dict:
        path = path.lstrip("/")
        if sha is None:
            sha = self.get_file_sha(owner, repo, path)
        body = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if sha:
            body["sha"] = sha
        r = self._request("PUT", f"/repos/{owner}/{repo}/contents/{path}", json=body)
        if r.status_code not in (200, 201):
            raise GitHubError(f"Could not write {path} ({r.status_code})")
        return r.json()


def push_files(token: str, repo_name: str, files: List[dict], message: Optional[str] = None) -> str:
    """Create the repo if needed, write every file and return the repository URL."""
    if not token:
        raise GitHubError("GitHub token is required")
    with GitHubClient(token) as client:
        owner = client.get_login()
        repo = client.get_or_create_repo(owner, repo_name)
        for f in files:
            client.put_file(owner, repo_name, f["name"], f["content"], message or "Deploy via ZapCodes")
    return repo.get("html_url") or f"https://github.com/{owner}/{repo_name}"


def fetch_repository(url: str, token: Optional[str] = None, max_files: int = MAX_SCAN_FILES) -> dict:
    """Read up to `max_files` code files of a repository for analysis."""
    owner, repo = parse_github_url(url)
    with GitHubClient(token) as client:
        paths = client.get_tree(owner, repo)
        files = []
        for path in paths[:max_files]:
            content = client.get_file(owner, repo, path)
            if content:
                files.append({"path": path, "content": content})
    logger.info("Fetched %s of %s code files from %s/%s", len(files), len(paths), owner, repo)
    return {
        "owner": owner,
        "repo": repo,
        "platform": detect_platform(paths),
        "files": files,
        "totalFiles": len(paths),
    }
