from __future__ import annotations

import json
import logging
import os
import ssl
from typing import Any, Dict, List
from urllib import request, error

from ..config import Settings


log = logging.getLogger("app.refine")


class UpstreamError(RuntimeError):
    """Raised when the model backend fails or returns an empty completion."""


SYSTEM_PROMPT = "\n".join([
    "你正在为一位**准妈妈播客制作人**服务。她做的是有温度、有细节的文化类播客。",
    "",
    "你的任务：",
    "1. **深度阅读**她提供的文稿/读书笔记，按「核心金句 + 逻辑拆解 + 互动建议」结构输出大纲（items）。",
    "2. 再写一段**播客开场白**（opening），口语化、有钩子，约 150–250 字。开场白中不要使用占位符（如 XX、XXX、填空），请直接写出完整可用的开场白。",
    "",
    "---",
    "",
    "【大纲结构——必须严格按以下三部分组织每条】",
    "每条 items 元素必须包含（可多行，用 \\n 换行；子项缩进两空格后写 - ）：",
    "",
    "1. **核心金句**：从文稿中摘出或提炼的一句可引用、可做标题的话。用 ** 标出关键词。",
    "2. **逻辑拆解**：用 1～3 个子点（换行后两空格 + 短横）写出证据、案例、因果。",
    "3. **互动建议**（可选）：括号里用「说明：」写一句给主播的提示，会显示为「AI 洞察」小标签。",
    "",
    "【丰富度与格式】",
    "- 主要点位不得少于 5 条；每条都要有**核心金句**和**逻辑拆解**，尽量带**互动建议**（说明：…）。",
    "- 关键词必须用 ** 加粗。",
    "- 只输出合法 JSON 一行，不要 markdown 代码块。**必须**包含 **items**（数组）和 **visualCode**（字符串）。",
    "",
    "【visualCode 字段——必须输出】",
    "- **如果文稿包含时间线或逻辑流程**：在 **visualCode** 中生成 **Mermaid 语法代码**（如 graph TD、flowchart、timeline）。",
    "- **如果没有时间线或逻辑流程**：在 **visualCode** 中生成一段**简单的思维导图 Mermaid 代码**（mindmap 语法）。",
    "",
    '示例：{"items":[...],"opening":"...","visualCode":"graph TD\\n  A[起点]-->B[过程]\\n  B-->C[结果]"}',
    "只输出 JSON，严禁包含 Markdown 代码块。",
])

_USER_PREFIX = (
    "请根据以下文稿/笔记，输出一个仅包含 summary 和 outline 的 JSON。"
    "summary=播客开场白/摘要，outline=Markdown 列表大纲。只输出 JSON，不要其他文字。\n\n文稿：\n"
)


def _ssl_context() -> ssl.SSLContext:
    # Be tolerant of environments with custom SSL; allow opt-out verify
    if os.getenv("OUTLINE_SSL_NO_VERIFY"):
        return ssl._create_unverified_context()  # type: ignore[attr-defined]
    return ssl.create_default_context()


def _http_post(url: str, headers: Dict[str, str], data: Dict[str, Any], timeout: int = 120) -> Dict[str, Any]:
    body = json.dumps(data).encode("utf-8")
    hdrs = {"User-Agent": "outline-worker/1.0 python-urllib", **headers}
    req = request.Request(url, data=body, headers=hdrs, method="POST")
    try:
        with request.urlopen(req, context=_ssl_context(), timeout=timeout) as resp:
            raw = resp.read()
    except error.HTTPError as e:
        try:
            payload = e.read().decode("utf-8")
        except Exception:
            payload = ""
        raise UpstreamError(f"HTTP {e.code}: {payload or e.reason}") from e
    except (error.URLError, OSError) as e:
        raise UpstreamError(f"request to {url} failed: {e}") from e
    try:
        return json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise UpstreamError(f"non-JSON response from {url}") from e


def _http_ok(url: str, timeout: int = 3) -> bool:
    req = request.Request(url, method="GET")
    try:
        with request.urlopen(req, context=_ssl_context(), timeout=timeout) as resp:
            return 200 <= resp.status < 300
    except (error.URLError, OSError):
        return False


def _user_prompt(notes: str) -> str:
    return _USER_PREFIX + notes


def _chat_content(res: Any) -> str:
    """``choices[0].message.content`` of a chat completion, or "" on any other shape."""
    if not isinstance(res, dict):
        return ""
    choices = res.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""


def refine_with_deepseek(settings: Settings, notes: str) -> str:
    messages: List[Dict[str, str]] = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": _user_prompt(notes)},
    ]
    payload = {
        "model": settings.deepseek_model,
        "messages": messages,
        "max_tokens": settings.max_tokens,
        "temperature": settings.temperature,
    }
    try:
        res = _http_post(
            f"{settings.deepseek_base.rstrip('/')}/v1/chat/completions",
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {settings.deepseek_api_key}",
            },
            data=payload,
            timeout=settings.upstream_timeout,
        )
    except UpstreamError as e:
        raise UpstreamError(f"DeepSeek request failed ({e})") from e
    text = _chat_content(res).strip()
    if not text:
        raise UpstreamError("DeepSeek returned an empty completion")
    return text


def refine_with_ollama(settings: Settings, notes: str) -> str:
    payload = {
        "model": settings.ollama_model,
        "prompt": f"{SYSTEM_PROMPT}\n\n---\n\n{_user_prompt(notes)}",
        "stream": False,
        "options": {"num_predict": settings.max_tokens},
    }
    try:
        res = _http_post(
            f"{settings.ollama_base.rstrip('/')}/api/generate",
            headers={"Content-Type": "application/json"},
            data=payload,
            timeout=settings.upstream_timeout,
        )
    except UpstreamError as e:
        raise UpstreamError(f"Ollama request failed ({e})") from e
    text = str((res.get("response") if isinstance(res, dict) else None) or "").strip()
    if not text:
        raise UpstreamError("Ollama returned an empty completion")
    return text


def is_ollama_available(settings: Settings) -> bool:
    return _http_ok(f"{settings.ollama_base.rstrip('/')}/api/tags")


def selected_provider(settings: Settings) -> str:
    """Provider used for refine calls: ``deepseek`` or ``ollama``."""
    provider = (settings.provider or "auto").strip().lower()
    if provider in ("deepseek", "ollama"):
        return provider
    return "deepseek" if settings.deepseek_api_key else "ollama"


def generate_outline_text(settings: Settings, notes: str) -> str:
    """Run one upstream completion for ``notes`` and return the raw reply text."""
    provider = selected_provider(settings)
    log.info(f"refine via {provider} ({len(notes)} chars of notes)")
    if provider == "deepseek":
        return refine_with_deepseek(settings, notes)
    return refine_with_ollama(settings, notes)


def provider_diagnostics(settings: Settings) -> Dict[str, Any]:
    """Return which backend would serve requests and whether it is reachable."""
    ollama_ok = is_ollama_available(settings)
    has_key = bool(settings.deepseek_api_key)
    choice = selected_provider(settings)
    if choice == "deepseek":
        provider = "deepseek" if has_key else "none"
    else:
        provider = "ollama" if ollama_ok else "none"
    return {
        "ok": True,
        "hasDeepSeekKey": has_key,
        "ollamaAvailable": ollama_ok,
        "provider": provider,
        "port": settings.port,
    }
