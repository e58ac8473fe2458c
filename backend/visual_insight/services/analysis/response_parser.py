"""
Extract tagged sections from a free-text model reply.

Replies are expected to contain four uppercase tags::

    ANALYSIS: ...
    CODE: ...
    VISUALIZATION_TYPE: ...
    EXPLANATION: ...

Each section runs from its tag to the nearest following occurrence of any of
the other three tags, or to the end of the text, so the tags may appear in
any order. A missing or empty section falls back to its placeholder and the
reply is marked degraded; parsing never raises.
"""

import logging
import re

from visual_insight.models import (
    ANALYSIS_PLACEHOLDER,
    CODE_PLACEHOLDER,
    EXPLANATION_PLACEHOLDER,
    VISUALIZATION_TYPE_PLACEHOLDER,
    ModelReply,
)

logger = logging.getLogger(__name__)

SECTION_TAGS: dict[str, str] = {
    "analysis": "ANALYSIS:",
    "code": "CODE:",
    "visualization_type": "VISUALIZATION_TYPE:",
    "explanation": "EXPLANATION:",
}

PLACEHOLDERS: dict[str, str] = {
    "analysis": ANALYSIS_PLACEHOLDER,
    "code": CODE_PLACEHOLDER,
    "visualization_type": VISUALIZATION_TYPE_PLACEHOLDER,
    "explanation": EXPLANATION_PLACEHOLDER,
}

_FENCE_PATTERN = re.compile(r"```(?:python|py)?[ \t]*\n?(.*?)```", re.IGNORECASE | re.DOTALL)


def _compile_section_patterns() -> dict[str, re.Pattern]:
    patterns = {}
    for field_name, tag in SECTION_TAGS.items():
        others = "|".join(re.escape(t) for f, t in SECTION_TAGS.items() if f != field_name)
        patterns[field_name] = re.compile(
            rf"{re.escape(tag)}\s*(.*?)(?={others}|\Z)", re.DOTALL
        )
    return patterns


_SECTION_PATTERNS = _compile_section_patterns()


def _strip_code_fence(code: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    match = _FENCE_PATTERN.search(code)
    if match:
        return match.group(1).strip()
    if "```" in code:
        # Unterminated fence, e.g. a reply cut off by max_tokens
        code = re.sub(r"```(?:python|py)?", "", code, flags=re.IGNORECASE)
    return code.strip()


def parse_model_reply(raw: str | None) -> ModelReply:
    """Split a raw model reply into analysis, code, chart kind and explanation."""
    raw = raw or ""
    sections: dict[str, str] = {}
    missing: list[str] = []

    for field_name, pattern in _SECTION_PATTERNS.items():
        match = pattern.search(raw)
        value = match.group(1).strip() if match else ""
        if value and field_name == "code":
            value = _strip_code_fence(value)
        if value:
            sections[field_name] = value
        else:
            sections[field_name] = PLACEHOLDERS[field_name]
            missing.append(field_name)

    if missing:
        logger.warning(
            f"ParseDegraded: model reply missing sections {missing} "
            f"(reply_length={len(raw)}), placeholders substituted"
        )

    return ModelReply(**sections, missing_sections=missing)
