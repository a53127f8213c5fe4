"""Argument normalisation, result formatting and prompt descriptions for tools."""

from __future__ import annotations

import json
import re
from typing import Any, Iterable

from toolvote.tools.base import Tool
from toolvote.tools.boundary import ToolCallResult
from toolvote.util.strings import sanitize_tool_text

_PLACEHOLDERS = {"null", "none", "undefined"}
_NUMERIC_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


def declared_types(tool: Tool) -> dict[str, set[str]]:
    """Map each parameter to the JSON schema types it accepts.

    ``Optional`` fields are declared through ``anyOf``; every branch counts.
    """
    properties = tool.input_schema.model_json_schema().get("properties") or {}
    declared: dict[str, set[str]] = {}
    for key, schema in properties.items():
        branches = schema.get("anyOf") or [schema]
        declared[key] = {
            branch["type"] for branch in branches if isinstance(branch.get("type"), str)
        }
    return declared


def coerce_primitive(value: Any, kinds: set[str]) -> Any:
    """Convert a string to the bool or number its field declares.

    Strings for fields that accept ``string`` (or declare nothing) are only
    trimmed.
    """
    if not isinstance(value, str):
        return value
    trimmed = value.strip()
    if not kinds or "string" in kinds:
        return trimmed
    lower = trimmed.lower()
    if "boolean" in kinds and lower in {"true", "false"}:
        return lower == "true"
    if kinds & {"integer", "number"} and _NUMERIC_RE.match(trimmed):
        if _INTEGER_RE.match(trimmed):
            return int(trimmed)
        if "number" in kinds:
            return float(trimmed)
    return trimmed


def normalize_arguments(tool: Tool | None, raw_arguments: Any) -> dict[str, Any]:
    """Keep declared keys only, drop placeholder values and coerce strings."""
    if tool is None or not isinstance(raw_arguments, dict):
        return {}
    declared = declared_types(tool)
    normalized: dict[str, Any] = {}
    for key, value in raw_arguments.items():
        if key not in declared:
            continue
        if value is None or value == "":
            continue
        if isinstance(value, str) and value.strip().lower() in _PLACEHOLDERS:
            continue
        normalized[key] = coerce_primitive(value, declared[key])
    return normalized


def _structured_status(structured: dict[str, Any] | None) -> str:
    if not structured:
        return ""
    status = structured.get("status")
    if isinstance(status, (str, int, float, bool)):
        return str(status).strip().lower()
    return ""


def did_tool_succeed(result: ToolCallResult | None) -> bool:
    if result is None:
        return False
    if result.is_error:
        return False
    status = _structured_status(result.structured)
    if status == "success":
        return True
    if status == "error":
        return False
    return True


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return str(value)
    if isinstance(value, list):
        return ", ".join(_format_value(item) for item in value)
    return json.dumps(value, ensure_ascii=False)


def _structured_summary(structured: dict[str, Any] | None) -> str:
    if not structured:
        return ""
    status = _structured_status(structured)
    action = structured.get("action") or ""
    details = [
        f"{key}={_format_value(value)}"
        for key, value in structured.items()
        if key not in {"status", "action"}
    ]
    headline = " - ".join(part for part in (str(action), status) if part)
    if not details:
        return headline
    return f"{headline}: {', '.join(details)}" if headline else ", ".join(details)


def format_tool_result(result: ToolCallResult) -> str:
    """Render a tool result as text; the first line is its short summary."""
    segments: list[str] = []
    summary = _structured_summary(result.structured)
    if result.is_error and not summary:
        segments.append("ERROR")
    if summary:
        segments.append(summary)
    segments.extend(sanitize_tool_text(segment) for segment in result.text_segments)
    if not segments:
        segments.append("(no content)")
    return sanitize_tool_text("\n".join(segments))


def common_tools(tools: Iterable[Tool]) -> list[Tool]:
    return [tool for tool in tools if tool.tier <= 2]


def other_tools(tools: Iterable[Tool]) -> list[Tool]:
    return [tool for tool in tools if tool.tier > 2]


def format_tools_by_tier(tools: list[Tool]) -> str:
    lines = [f"- {tool.name}: {tool.description or 'No description'}" for tool in common_tools(tools)]
    others = other_tools(tools)
    if others:
        lines.append(f"- Other tools: {', '.join(tool.name for tool in others)}")
    return "\n".join(lines)


def format_tool_names(tools: list[Tool]) -> str:
    return ", ".join(tool.name for tool in sorted(tools, key=lambda tool: tool.tier))


def format_parameter_hints(tool: Tool) -> str:
    schema = tool.input_schema.model_json_schema()
    properties: dict[str, Any] = schema.get("properties") or {}
    required = set(schema.get("required") or [])
    lines = []
    for key, spec in properties.items():
        kind = spec.get("type") or "string"
        mark = " (required)" if key in required else ""
        description = f" - {spec['description']}" if spec.get("description") else ""
        lines.append(f"  - {key}: {kind}{mark}{description}")
    return "\n".join(lines)
