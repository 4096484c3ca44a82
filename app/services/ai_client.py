"""
Chat-completion client for Groq (OpenAI-compatible) and Anthropic.

complete() returns the response text or None. Groq walks a model fallback
chain; Haiku falls back to Groq when Anthropic is unavailable.
"""
import json
import logging
import os
import re
from typing import List, Optional

import requests

logger = logging.getLogger(__name__)

GROQ_API_URL = "https://api.groq.com/openai/v1/chat/completions"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

MODELS = {
    "groq": {
        "models": ["llama-3.3-70b-versatile", "llama3-70b-8192", "deepseek-r1-distill-llama-70b", "mixtral-8x7b-32768"],
        "max_output": 8192,
        "context_limit": 30000,
        "timeout": 90,
    },
    "haiku": {"model": "claude-haiku-4-5-20251001", "max_output": 16384, "context_limit": 180000, "timeout": 180},
    "opus": {"model": "claude-opus-4-6", "max_output": 32768, "context_limit": 180000, "timeout": 180},
}


def _groq_key() -> str:
    return os.getenv("GROQ_API_KEY", "")


def _anthropic_key() -> str:
    return os.getenv("ANTHROPIC_API_KEY", "")


def call_groq(system_prompt: str, user_prompt: str, max_tokens: Optional[int] = None) -> Optional[str]:
    key = _groq_key()
    if not key:
        logger.warning("[GROQ] GROQ_API_KEY not set")
        return None

    config = MODELS["groq"]
    for model in config["models"]:
        try:
            logger.info("[GROQ] -> %s", model)
            r = requests.post(
                GROQ_API_URL,
                json={
                    "model": model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt[: config["context_limit"]]},
                    ],
                    "temperature": 0.2,
                    "max_tokens": max_tokens or config["max_output"],
                },
                headers={"Authorization": f"Bearer {key}", "Content-Type": "application/json"},
                timeout=config["timeout"],
            )
            r.raise_for_status()
            choices = r.json().get("choices") or []
            content = choices[0].get("message", {}).get("content") if choices else None
            if content:
                logger.info("[GROQ] ok %s (%s chars)", model, len(content))
                return content
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            logger.error("[GROQ] failed %s (%s)", model, status_code)
            # Bad key or rate limit applies to every model in the chain
            if status_code in (401, 429):
                break
        except requests.exceptions.RequestException as e:
            logger.error("[GROQ] failed %s: %s", model, e)
    return None


def call_claude(system_prompt: str, user_prompt: str, model: str = "haiku", max_tokens: Optional[int] = None) -> Optional[str]:
    key = _anthropic_key()
    config = MODELS[model]
    if not key:
        logger.warning("[Claude] No ANTHROPIC_API_KEY, falling back to Groq")
        return call_groq(system_prompt, user_prompt, max_tokens)

    try:
        r = requests.post(
            ANTHROPIC_API_URL,
            json={
                "model": config["model"],
                "max_tokens": max_tokens or config["max_output"],
                "system": system_prompt,
                "messages": [{"role": "user", "content": user_prompt[: config["context_limit"]]}],
            },
            headers={
                "x-api-key": key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            timeout=config["timeout"],
        )
        r.raise_for_status()
        blocks = r.json().get("content") or []
        text = blocks[0].get("text", "") if blocks else ""
        if text:
            logger.info("[Claude] ok %s (%s chars)", config["model"], len(text))
            return text
        return None
    except requests.exceptions.RequestException as e:
        logger.error("[Claude] failed %s: %s", config["model"], e)
        if model == "haiku":
            logger.info("[Claude] Haiku failed, Groq fallback")
            return call_groq(system_prompt, user_prompt, max_tokens)
        return None


def complete(system_prompt: str, user_prompt: str, model: str = "groq", max_tokens: Optional[int] = None) -> Optional[str]:
    """Unified entry point used by the build routes."""
    if model in ("haiku", "opus"):
        return call_claude(system_prompt, user_prompt, model=model, max_tokens=max_tokens)
    return call_groq(system_prompt, user_prompt, max_tokens)


def analyze_code(files: List[dict], model: str = "groq") -> List[dict]:
    """Ask the model for a JSON list of issues in the given files. Returns [] on failure."""
    summary = "\n\n".join(
        f"--- {f.get('path') or f.get('name')} ---\n{(f.get('content') or '')[:4000]}"
        for f in files[:20]
    )
    system_prompt = (
        "You are ZapCodes AI code analyzer. Return ONLY valid JSON array of issues: "
        '[{"type":"crash|memory_leak|anr|warning|error|security|performance",'
        '"severity":"critical|high|medium|low","title":"...","description":"...",'
        '"file":"...","line":N,"code":"...","fixedCode":"...","explanation":"..."}]. '
        "Return 3-8 issues."
    )
    result = complete(system_prompt, f"Analyze:\n\n{summary}", model)
    if not result:
        return []
    match = re.search(r"\[[\s\S]*\]", result)
    if not match:
        return []
    try:
        issues = json.loads(match.group(0))
    except json.JSONDecodeError:
        return []
    return issues if isinstance(issues, list) else []


def verify_ai_status() -> dict:
    """Report which providers have keys configured and answer a tiny prompt."""
    status = {
        "groq": {"available": False, "error": None},
        "haiku": {"available": False, "model": MODELS["haiku"]["model"], "error": None},
        "opus": {"available": False, "model": MODELS["opus"]["model"], "error": None},
    }
    if not _groq_key():
        status["groq"]["error"] = "GROQ_API_KEY not set"
    else:
        status["groq"]["available"] = call_groq("Reply OK", "OK", max_tokens=5) is not None
        if not status["groq"]["available"]:
            status["groq"]["error"] = "All Groq models failed"

    for name in ("haiku", "opus"):
        if not _anthropic_key():
            status[name]["error"] = "ANTHROPIC_API_KEY not set"
        else:
            status[name]["available"] = True
    return status
