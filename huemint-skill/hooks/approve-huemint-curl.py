#!/usr/bin/env -S uv run
# /// script
# requires-python = ">=3.10"
# ///
"""Huemint Curl Approval -- auto-approves curl requests to the Huemint API.

PreToolUse hook that pre-approves shell commands which invoke `curl` against
an allow-listed API host (api.huemint.com by default). It never denies: a
command that does not match gets no output at all, so the host falls back
to its normal permission flow. Every invocation exits 0.

A JSON payload naming any tool other than Bash yields an empty command
(never a raw-text scan), in every reader mode, so only shell commands are
ever approved.
"""

import contextlib
import json
import logging
import os
import re
import sys
import tempfile
from pathlib import Path
from typing import NamedTuple

_MAX_INPUT = 10 * 1024 * 1024  # 10 MB

_CURL = re.compile(r"\bcurl\b")

# Each rule: (name, tool_pattern, host, reason)
# tool_pattern: regex for the fetch tool that must appear in the command
# host: literal substring that must also appear in the command
RULES = [
    (
        "huemint-api",
        _CURL,
        "api.huemint.com",
        "Huemint palette API request",
    ),
]

logger = logging.getLogger("curl-approve")


# ── Configuration ───────────────────────────────────────────────────────────


def _validate_user_path(p, default):
    """Ensure path is within user's home or temp directory. Falls back to default."""
    try:
        resolved = Path(p).resolve()
        roots = [Path(tempfile.gettempdir()).resolve()]
        with contextlib.suppress(RuntimeError):
            roots.append(Path.home().resolve())
        if any(resolved.is_relative_to(root) for root in roots):
            return resolved
    except (OSError, ValueError):
        pass
    return default


def _default_log_path() -> Path:
    """~/.claude/logs/curl-approve.log, or the temp directory when home is unknown."""
    try:
        return Path.home() / ".claude" / "logs" / "curl-approve.log"
    except (OSError, RuntimeError):
        return Path(tempfile.gettempdir()) / "curl-approve.log"


def _setup_log() -> logging.Logger:
    """Attach a file handler per CURL_APPROVE_LOG_LEVEL ("off", "actions", "all")."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    level = os.environ.get("CURL_APPROVE_LOG_LEVEL", "actions").lower()
    if level == "off":
        logger.addHandler(logging.NullHandler())
        return logger

    default_path = _default_log_path()
    log_path = _validate_user_path(
        os.environ.get("CURL_APPROVE_LOG_PATH", str(default_path)),
        default_path,
    )
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path)
    except OSError:
        logger.addHandler(logging.NullHandler())
        return logger
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if level == "all" else logging.INFO)
    return logger


def _parse_rule_entry(entry):
    """Turn one JSON rule object into a rule tuple. Raises on malformed entries."""
    name = entry["name"]
    host = entry["host"]
    tool = entry.get("tool", "curl")
    for field, value in (("name", name), ("host", host), ("tool", tool)):
        if not isinstance(value, str) or not value:
            raise ValueError(f"'{field}' must be a non-empty string")
    reason = entry.get("reason") or f"Auto-approved {tool} request to {host}"
    return (name, re.compile(rf"\b{re.escape(tool)}\b"), host, reason)


def _load_extra_rules():
    """Load additional approval rules from a JSON file.

    Set CURL_APPROVE_EXTRA_RULES to the path of a JSON file containing an
    array of rule objects with keys: name, host. Optionally include "tool"
    (default "curl") and "reason".

    Example JSON:
    [
        {
            "name": "colormind-api",
            "host": "colormind.io",
            "reason": "Colormind palette request"
        }
    ]

    A file that fails to load or validate is ignored as a whole.
    """
    rules_path = os.environ.get("CURL_APPROVE_EXTRA_RULES")
    if not rules_path:
        return []
    try:
        with open(rules_path) as f:
            raw = json.load(f)
        if not isinstance(raw, list):
            raise TypeError(f"expected JSON array, got {type(raw).__name__}")
        return [_parse_rule_entry(entry) for entry in raw]
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning("Ignoring extra rules from %s: %s", rules_path, e)
        return []


def _load_rules():
    """Built-in rules first, then any user-defined extras in file order."""
    return RULES + _load_extra_rules()


def _validate_config() -> int:
    """Validate the extra rules file.

    Output channels follow hook conventions:
      - Success (exit 0): stdout (shown in transcript)
      - Failure (exit 2): stderr (fed back to Claude)
    """
    rules_path = os.environ.get("CURL_APPROVE_EXTRA_RULES")
    if not rules_path:
        print("Curl approval rules — built-in only (CURL_APPROVE_EXTRA_RULES not set)")
        return 0

    issues = []
    raw = []
    try:
        with open(rules_path) as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        issues.append(f"invalid JSON: {e}")
    except (OSError, UnicodeDecodeError) as e:
        issues.append(f"cannot read file: {e}")

    if not isinstance(raw, list):
        issues.append(f"expected JSON array, got {type(raw).__name__}")
    else:
        for i, entry in enumerate(raw):
            if not isinstance(entry, dict):
                issues.append(f"[{i}]: expected object, got {type(entry).__name__}")
                continue
            try:
                _parse_rule_entry(entry)
            except KeyError as e:
                issues.append(f"[{i}]: missing required field {e}")
            except (ValueError, TypeError) as e:
                issues.append(f"[{i}]: {e}")

    if issues:
        print(f"Curl approval rules — validation failed for {rules_path}:", file=sys.stderr)
        for issue in issues:
            print(f"  ✗ {issue}", file=sys.stderr)
        return 2
    print(f"Curl approval rules — {len(raw)} extra rule(s) from {rules_path}")
    return 0


# ── Request Reader ──────────────────────────────────────────────────────────


class Parsed(NamedTuple):
    """Command text taken from a structured hook payload."""

    text: str


class Unparsed(NamedTuple):
    """Raw payload text, scanned as-is when no command field was found."""

    text: str


def _read_payload(stream=None) -> bytes | None:
    """Read at most _MAX_INPUT bytes. None if oversized or unreadable."""
    stream = stream if stream is not None else sys.stdin.buffer
    try:
        raw = stream.read(_MAX_INPUT + 1)
    except OSError as e:
        logger.debug("Could not read hook input: %s", e)
        return None
    if len(raw) > _MAX_INPUT:
        logger.debug("Hook input exceeds %d bytes; no opinion", _MAX_INPUT)
        return None
    return raw


def _load_object(text: str) -> dict | None:
    """Parse *text* as a JSON object. None for anything else."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def _names_other_tool(text: str) -> bool:
    data = _load_object(text)
    if data is None:
        return False
    tool_name = data.get("tool_name")
    return tool_name is not None and tool_name != "Bash"


def _read_structured(text: str) -> Parsed | None:
    data = _load_object(text)
    if data is None:
        return None

    tool_input = data.get("tool_input")
    if isinstance(tool_input, dict):
        command = tool_input.get("command")
        if isinstance(command, str) and command:
            return Parsed(command)
    command = data.get("command")
    if isinstance(command, str) and command:
        return Parsed(command)
    return None


def _read_raw(text: str) -> Unparsed:
    return Unparsed(text)


_READERS = {
    "structured": (_read_structured, _read_raw),
    "raw": (_read_raw,),
}


def read_request(raw: bytes, mode: str = "structured") -> Parsed | Unparsed:
    """Extract the command text to classify, trying each reader strategy in turn."""
    text = raw.decode("utf-8", errors="replace")
    if _names_other_tool(text):
        # Only shell commands are ever approved, whatever the reader mode
        return Parsed("")
    readers = _READERS.get(mode)
    if readers is None:
        logger.warning("Unknown CURL_APPROVE_READER %r; using structured", mode)
        readers = _READERS["structured"]
    for reader in readers:
        request = reader(text)
        if request is not None:
            return request
    return Unparsed(text)


# ── Policy Matcher ──────────────────────────────────────────────────────────


def match_rule(text: str, rules=None) -> tuple[str, str] | None:
    """Return (name, reason) of the first rule matching *text*, or None."""
    if not text:
        return None
    for name, tool_pattern, host, reason in rules if rules is not None else RULES:
        if tool_pattern.search(text) and host in text:
            return (name, reason)
    return None


# ── Decision Emitter ────────────────────────────────────────────────────────


def build_decision(rule_name: str, reason: str) -> dict:
    return {
        "hookSpecificOutput": {
            "hookEventName": "PreToolUse",
            "permissionDecision": "allow",
            "permissionDecisionReason": f"[{rule_name}] {reason}",
        }
    }


def _emit_allow(rule_name: str, reason: str) -> None:
    with contextlib.suppress(OSError):
        print(json.dumps(build_decision(rule_name, reason)), flush=True)


def main() -> None:
    if "--validate" in sys.argv:
        sys.exit(_validate_config())

    _setup_log()
    raw = _read_payload()
    if raw is None:
        sys.exit(0)

    request = read_request(raw, os.environ.get("CURL_APPROVE_READER", "structured").lower())
    if isinstance(request, Unparsed) and request.text:
        logger.debug("No command field in hook input; scanning raw payload")

    verdict = match_rule(request.text, _load_rules())
    if verdict is None:
        logger.debug("No rule matched: %.200s", request.text)
        sys.exit(0)

    rule_name, reason = verdict
    logger.info("Approved [%s]: %.500s", rule_name, request.text)
    _emit_allow(rule_name, reason)
    sys.exit(0)


if __name__ == "__main__":
    main()
