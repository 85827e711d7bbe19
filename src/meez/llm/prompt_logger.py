"""
Meez - Prompt Logger.

Writes every model prompt and response to a markdown file for debugging.
Enabled via MEEZ_LOG_PROMPTS=1 or the --log-prompts CLI flag.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any

LOG_PROMPTS = os.getenv("MEEZ_LOG_PROMPTS", "0") == "1"
LOG_DIR = Path("prompt_logs")

_session_id: str | None = None
_call_counter: int = 0


def enable_prompt_logging(enabled: bool = True) -> None:
    """Enable or disable prompt logging."""
    global LOG_PROMPTS
    LOG_PROMPTS = enabled
    if enabled:
        LOG_DIR.mkdir(exist_ok=True)


def is_enabled() -> bool:
    return LOG_PROMPTS


def _get_session_dir() -> Path:
    global _session_id
    if _session_id is None:
        _session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    session_dir = LOG_DIR / _session_id
    session_dir.mkdir(parents=True, exist_ok=True)
    return session_dir


def log_prompt(
    *,
    task: str,
    model: str,
    system_prompt: str,
    user_prompt: str,
    response: Any = None,
    error: str | None = None,
    config: dict | None = None,
    image_count: int = 0,
) -> Path | None:
    """
    Log a prompt and response to a file.

    Args:
        task: Which task made this call (structure, substitution, scaling, ...)
        model: The model used
        system_prompt: The system prompt
        user_prompt: The user prompt
        response: Raw response text or a JSON-serializable object
        error: Any error that occurred
        config: Generation settings (temperature, max_tokens)
        image_count: Number of images attached to the call

    Returns:
        Path to the log file, or None if logging is disabled
    """
    if not LOG_PROMPTS:
        return None

    global _call_counter
    _call_counter += 1

    filepath = _get_session_dir() / f"{_call_counter:02d}_{task}.md"

    header = [f"# LLM Call: {task}", "", f"**Time:** {datetime.now().isoformat()}", f"**Model:** {model}"]
    settings = {k: v for k, v in (config or {}).items() if k != "model"}
    if settings:
        header.append("**Config:** " + ", ".join(f"{k}={v}" for k, v in settings.items()))
    if image_count:
        header.append(f"**Images:** {image_count}")

    parts = [
        "\n".join(header),
        _section("System Prompt", f"```\n{system_prompt}\n```"),
        _section("User Prompt", f"```\n{user_prompt}\n```"),
        _section("Response", _render_response(response, error)),
    ]
    filepath.write_text("\n\n---\n\n".join(parts) + "\n", encoding="utf-8")
    return filepath


def _section(title: str, body: str) -> str:
    return f"## {title}\n\n{body}"


def _render_response(response: Any, error: str | None) -> str:
    if error:
        return f"**ERROR:** {error}"
    if isinstance(response, str):
        return f"```\n{response}\n```"
    if response is not None:
        return f"```json\n{json.dumps(response, indent=2, default=str)}\n```"
    return "(No response)"


def get_session_log_dir() -> Path | None:
    """Directory of the current session's logs, if anything was logged."""
    if _session_id is None:
        return None
    return LOG_DIR / _session_id


def reset_session() -> None:
    """Reset the session (for testing or a new CLI run)."""
    global _session_id, _call_counter
    _session_id = None
    _call_counter = 0
