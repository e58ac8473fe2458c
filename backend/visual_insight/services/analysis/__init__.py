"""Prompt construction and reply parsing for chart generation."""

from .prompts import ANALYSIS_PROMPT, SYSTEM_PROMPT, build_analysis_prompt
from .response_parser import parse_model_reply

__all__ = [
    "ANALYSIS_PROMPT",
    "SYSTEM_PROMPT",
    "build_analysis_prompt",
    "parse_model_reply",
]
