"""
Repository scans and site cloning through the HTTP API. GitHub, the target
site and the LLM are monkeypatched.
"""
from types import SimpleNamespace

import requests

from app.services import ai_client, usage_counter
from app.services.github_client import GitHubError
from app.utils.encryption import encrypt_token

HTML_RESPONSE = "```html\n<!DOCTYPE html>\n<html><head></head><body><h1>Shop</h1></body></html>\n```"

REPO = {
    "owner": "octo",
    "repo": "shop",
    "platform": "web",
    "files": [{"path": "src/app.js", "content": "const a = 1;\nconsole.log(a)"}],
    "totalFiles": 1,
}

ISSUES = [
    {"type": "crash", "severity": "critical", "title": "Null dereference", "file": "src/app.js"},
    {"type": "warning", "severity": "low", "title": "Console output left in"},
]


def _fake_fetch(calls, result=REPO):
    def fetch(url, token=None):
        calls.append((url, token))
        return dict(result)
    return fetch


def test_scan_repository(client, make_user, auth_headers, monkeypatch):
    user = make_user("bronze", coins=5_000)
    calls = []
    monkeypatch.setattr("app.api.routes.scan.fetch_repository", _fake_fetch(calls))
    monkeypatch.setattr(ai_client, "analyze_code", lambda files, model: ISSUES)

    response = client.post("/api/scan", json={"url": "https://github.com/octo/shop"}, headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert body["repo"]["name"] == "shop"
    assert body["repo"]["platform"] == "web"
    assert [issue["status"] for issue in body["issues"]] == ["open", "open"]
    assert all(issue["id"] for issue in body["issues"])
    assert body["stats"]["critical"] == 1
    assert body["stats"]["low"] == 1
    assert body["stats"]["totalFiles"] == 1
    assert body["stats"]["totalLines"] == 2
    assert body["scansUsed"] == 1
    assert body["scansLimit"] == 25
    assert body["blSpent"] == 5_000
    assert body["balanceRemaining"] == 0
    assert body["dailyUsage"]["codeFixes"] == 1
    assert calls == [("https://github.com/octo/shop", None)]


def test_scan_uses_stored_github_token(client, make_user, auth_headers, monkeypatch):
    user = make_user("gold", coins=20_000, github_token=encrypt_token("ghp_private"))
    calls = []
    monkeypatch.setattr("app.api.routes.scan.fetch_repository", _fake_fetch(calls))
    monkeypatch.setattr(ai_client, "analyze_code", lambda files, model: ISSUES)

    response = client.post("/api/scan", json={"url": "https://github.com/octo/shop"}, headers=auth_headers(user))
    assert response.status_code == 200
    assert calls[0][1] == "ghp_private"


def test_scan_limit_reached(client, db, make_user, auth_headers, monkeypatch):
    user = make_user("bronze", coins=50_000, scans_used=25)
    monkeypatch.setattr("app.api.routes.scan.fetch_repository", _fake_fetch([]))
    monkeypatch.setattr(ai_client, "analyze_code", lambda files, model: ISSUES)

    response = client.post("/api/scan", json={"url": "https://github.com/octo/shop"}, headers=auth_headers(user))

    assert response.status_code == 403
    assert response.json()["detail"]["scansLimit"] == 25
    db.refresh(user)
    assert user.bl_coins == 50_000
    assert user.scans_used == 25


def test_failed_scan_refunds_coins_and_scan(client, db, make_user, auth_headers, monkeypatch):
    user = make_user("bronze", coins=5_000)

    def unreachable(url, token=None):
        raise GitHubError("Could not read repository octo/shop (404)")

    monkeypatch.setattr("app.api.routes.scan.fetch_repository", unreachable)

    response = client.post("/api/scan", json={"url": "https://github.com/octo/shop"}, headers=auth_headers(user))

    assert response.status_code == 502
    assert response.json()["detail"]["refunded"] == 5_000
    db.refresh(user)
    assert user.bl_coins == 5_000
    assert user.scans_used == 0
    assert usage_counter.current_count(user, "codeFix") == 0


def test_scan_of_repo_without_code_is_refunded(client, db, make_user, auth_headers, monkeypatch):
    user = make_user("bronze", coins=5_000)
    empty = {**REPO, "files": [], "totalFiles": 0}
    monkeypatch.setattr("app.api.routes.scan.fetch_repository", _fake_fetch([], empty))

    response = client.post("/api/scan", json={"url": "https://github.com/octo/empty"}, headers=auth_headers(user))

    assert response.status_code == 502
    db.refresh(user)
    assert user.bl_coins == 5_000
    assert user.scans_used == 0


def test_scan_rejects_non_github_url(client, db, make_user, auth_headers):
    user = make_user("bronze", coins=5_000)
    response = client.post("/api/scan", json={"url": "https://example.com/shop"}, headers=auth_headers(user))
    assert response.status_code == 400
    db.refresh(user)
    assert user.scans_used == 0


def test_scan_on_free_plan_releases_the_scan(client, db, make_user, auth_headers):
    user = make_user("free", coins=100_000)
    response = client.post("/api/scan", json={"url": "https://github.com/octo/shop"}, headers=auth_headers(user))
    assert response.status_code == 403
    assert response.json()["detail"]["limit"] == 0
    db.refresh(user)
    assert user.scans_used == 0


def test_unlimited_scans_on_diamond(client, make_user, auth_headers, monkeypatch):
    user = make_user("diamond", coins=50_000, scans_used=10_000)
    monkeypatch.setattr("app.api.routes.scan.fetch_repository", _fake_fetch([]))
    monkeypatch.setattr(ai_client, "analyze_code", lambda files, model: ISSUES)

    response = client.post(
        "/api/scan",
        json={"url": "https://github.com/octo/shop", "engine": "opus"},
        headers=auth_headers(user),
    )
    assert response.status_code == 200
    assert response.json()["scansLimit"] is None
    assert response.json()["model"] == "opus"


def test_clone_analyze_pasted_code_is_free(client, make_user, auth_headers, monkeypatch):
    user = make_user("free")
    answer = '```json\n{"title": "Shop", "type": "ecommerce", "sections": ["hero", "products"]}\n```'
    monkeypatch.setattr(ai_client, "complete", lambda system, prompt, model: answer)

    response = client.post("/api/build/clone-analyze", json={"code": "<html>shop</html>"}, headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["analysis"]["type"] == "ecommerce"
    assert response.json()["analysis"]["sections"] == ["hero", "products"]


def test_clone_analyze_fetches_url(client, make_user, auth_headers, monkeypatch):
    user = make_user("free")
    seen = {}

    def fake_get(url, timeout=None, headers=None):
        seen["url"] = url
        return SimpleNamespace(text="<html><body>Remote</body></html>", raise_for_status=lambda: None)

    def fake_complete(system, prompt, model):
        seen["prompt"] = prompt
        return "A single page with a hero banner"

    monkeypatch.setattr(requests, "get", fake_get)
    monkeypatch.setattr(ai_client, "complete", fake_complete)

    response = client.post("/api/build/clone-analyze", json={"url": "https://example.com"}, headers=auth_headers(user))

    assert response.status_code == 200
    assert seen == {"url": "https://example.com", "prompt": "<html><body>Remote</body></html>"}
    analysis = response.json()["analysis"]
    assert analysis["type"] == "other"
    assert analysis["layout"] == "A single page with a hero banner"


def test_clone_analyze_input_errors(client, make_user, auth_headers, monkeypatch):
    headers = auth_headers(make_user("free"))

    def unreachable(url, timeout=None, headers=None):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(requests, "get", unreachable)

    assert client.post("/api/build/clone-analyze", json={}, headers=headers).status_code == 400
    assert client.post("/api/build/clone-analyze", json={"url": "file:///etc/passwd"}, headers=headers).status_code == 400
    response = client.post("/api/build/clone-analyze", json={"url": "https://down.example"}, headers=headers)
    assert response.status_code == 400
    assert "Could not fetch URL" in response.json()["detail"]


def test_clone_analyze_without_ai_answer(client, make_user, auth_headers, monkeypatch):
    monkeypatch.setattr(ai_client, "complete", lambda system, prompt, model: None)
    response = client.post(
        "/api/build/clone-analyze",
        json={"code": "<html></html>"},
        headers=auth_headers(make_user("free")),
    )
    assert response.status_code == 502


def test_clone_rebuild_is_metered_as_generation(client, make_user, auth_headers, monkeypatch):
    user = make_user("bronze", coins=5_000)
    prompts = []

    def fake_complete(system, prompt, model):
        prompts.append(prompt)
        return HTML_RESPONSE

    monkeypatch.setattr(ai_client, "complete", fake_complete)

    response = client.post(
        "/api/build/clone-rebuild",
        json={"analysis": {"title": "Shop", "type": "ecommerce"}, "modifications": "Use green"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["blSpent"] == 5_000
    assert body["files"][0]["name"] == "index.html"
    assert body["dailyUsage"]["generations"] == 1
    assert '"title": "Shop"' in prompts[0]
    assert "Use green" in prompts[0]


def test_clone_rebuild_modifications_too_long(client, make_user, auth_headers):
    user = make_user("free", coins=5_000)
    response = client.post(
        "/api/build/clone-rebuild",
        json={"analysis": {"title": "Shop"}, "modifications": "x" * 1_501},
        headers=auth_headers(user),
    )
    assert response.status_code == 400
    assert response.json()["detail"]["maxChars"] == 1_500
