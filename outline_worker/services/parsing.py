from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Tuple


OPENING_MARKER = "【开场白】"
OUTLINE_MARKER = "【大纲】"

# Cues that introduce the outline when only the opening marker is present.
# (pattern, keep_match): headings are dropped with the cue, bullets are kept.
_OUTLINE_CUES: Tuple[Tuple[re.Pattern[str], bool], ...] = (
    (re.compile(re.escape("大纲：")), False),
    (re.compile(re.escape("## 大纲")), False),
    (re.compile(re.escape("## 内容大纲")), False),
    (re.compile(r"^- ", re.M), True),
    (re.compile(r"^\* ", re.M), True),
)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.I)
_FENCE_CLOSE = re.compile(r"\s*```$")

# Domain record fields in output order: (native key, english alias)
_RECORD_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("核心金句", "core"),
    ("逻辑拆解", "logic"),
    ("互动建议", "insight"),
)


@dataclass(frozen=True)
class SectionSplit:
    outline: str = ""
    opening: str = ""


@dataclass(frozen=True)
class ParsedResponse:
    """Structured view of one model reply.

    When ``items`` is a non-empty list, ``outline`` is the rendering of those
    raw items; otherwise it is whatever the extraction path produced.
    """

    outline: str = ""
    opening: str = ""
    items: Optional[List[Any]] = None
    visual_code: Optional[str] = None


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


# ------------------------------ Items ------------------------------------

def normalize_item(item: Any) -> dict:
    """Canonicalize one ``items`` element into ``{"text": ...}``.

    Accepts plain strings, ``{"text": ...}`` records and core/logic/insight
    records keyed either by their Chinese names or their English aliases.
    """
    if item is None:
        return {"text": ""}
    if isinstance(item, str):
        return {"text": item.strip()}
    if isinstance(item, (list, tuple)):
        # arrays carry none of the record fields
        return {"text": ""}
    if not isinstance(item, Mapping):
        return {"text": _coerce_text(item)}
    text = item.get("text")
    if isinstance(text, str):
        return {"text": text.strip()}

    parts: List[str] = []
    for native, alias in _RECORD_FIELDS:
        value = item.get(native)
        if value is None:
            value = item.get(alias)
        part = _coerce_text(value).strip()
        if part:
            parts.append(part)
    return {"text": "\n".join(parts)}


def items_to_outline(items: Any) -> str:
    """Render items as a ``- `` bullet list, one line per item.

    Single pass only: lines that already start with a bullet get a second one.
    """
    if not isinstance(items, list) or not items:
        return ""
    lines: List[str] = []
    for item in items:
        if isinstance(item, str):
            text = item
        elif isinstance(item, Mapping) and item.get("text") is not None:
            text = _coerce_text(item["text"])
        elif item is None:
            text = "null"
        else:
            text = _coerce_text(item)
        lines.append("- " + text.strip())
    return "\n".join(lines)


# ---------------------------- Marked prose -------------------------------

def _section(text: str, start: int, marker: str, until: int) -> str:
    end = until if until != -1 else len(text)
    return text[start + len(marker):end].strip()


def _trim_to_outline_cue(segment: str) -> str:
    for pattern, keep_match in _OUTLINE_CUES:
        m = pattern.search(segment)
        if m is None:
            continue
        cut = m.start() if keep_match else m.end()
        return segment[cut:].strip()
    return segment


def split_by_markers(text: str) -> SectionSplit:
    """Split prose into opening and outline sections using the two markers.

    Never fails: with no markers the whole text is the opening and the first
    half doubles as a guessed outline.
    """
    open_idx = text.find(OPENING_MARKER)
    outline_idx = text.find(OUTLINE_MARKER)

    if open_idx != -1 and outline_idx != -1:
        opening = _section(text, open_idx, OPENING_MARKER, outline_idx if outline_idx > open_idx else -1)
        outline = _section(text, outline_idx, OUTLINE_MARKER, open_idx if open_idx > outline_idx else -1)
        return SectionSplit(outline=outline, opening=opening)
    if open_idx != -1:
        opening = _section(text, open_idx, OPENING_MARKER, -1)
        outline = _trim_to_outline_cue(text[:open_idx].strip())
        return SectionSplit(outline=outline, opening=opening)
    if outline_idx != -1:
        return SectionSplit(outline=_section(text, outline_idx, OUTLINE_MARKER, -1))
    half = len(text) // 2
    return SectionSplit(outline=text[:half].strip(), opening=text.strip())


# ------------------------------ Cascade ----------------------------------

def _strip_code_fence(text: str) -> str:
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text)).strip()


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def _decode_object(text: str) -> Optional[dict]:
    # NaN/Infinity are not JSON; deep nesting overflows the decoder's stack
    try:
        obj = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return None
    return obj if isinstance(obj, dict) else None


def _parse_json_reply(raw: str) -> Optional[ParsedResponse]:
    """Read a JSON object reply. Returns None when the reply is unusable."""
    obj = _decode_object(_strip_code_fence(raw))
    if obj is None:
        return None

    outline = obj["outline"] if isinstance(obj.get("outline"), str) else ""
    items: Optional[List[Any]] = None
    if isinstance(obj.get("items"), list) and obj["items"]:
        items = obj["items"]
        outline = items_to_outline(items)

    if isinstance(obj.get("opening"), str):
        opening = obj["opening"]
    elif isinstance(obj.get("summary"), str):
        opening = obj["summary"]
    else:
        opening = ""

    visual_code = None
    if obj.get("visualCode") is not None:
        visual_code = _coerce_text(obj["visualCode"]).strip() or None

    if not outline and not opening and items is None:
        return None
    return ParsedResponse(outline=outline, opening=opening, items=items, visual_code=visual_code)


def _parse_marked_prose(raw: str) -> ParsedResponse:
    split = split_by_markers(raw)
    return ParsedResponse(outline=split.outline, opening=split.opening)


_STRATEGIES: Tuple[Callable[[str], Optional[ParsedResponse]], ...] = (
    _parse_json_reply,
    _parse_marked_prose,
)


def parse_model_response(text: Optional[str]) -> ParsedResponse:
    """Turn a raw model reply into a ParsedResponse.

    Strategies run in order on the trimmed reply; the first usable result wins.
    The last strategy always produces a result.
    """
    raw = (text or "").strip()
    for strategy in _STRATEGIES:
        result = strategy(raw)
        if result is not None:
            return result
    return ParsedResponse()
