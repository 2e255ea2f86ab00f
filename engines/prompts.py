from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional

from .errors import EngineError


def load_messages(task: str, prompt_dir: Optional[Path] = None) -> List[Dict[str, str]]:
    """Load ``<task>.<role>.prompt`` files as chat messages.

    A plain ``<task>.prompt`` is used as the user message when no
    role-specific user prompt exists.
    """
    base = Path(prompt_dir) if prompt_dir else resources.files("config").joinpath("prompts")
    messages: List[Dict[str, str]] = []
    for role in ("system", "assistant", "user"):
        file = base.joinpath(f"{task}.{role}.prompt")
        if file.is_file():
            messages.append({"role": role, "content": file.read_text(encoding="utf-8")})
    if not messages or messages[-1]["role"] != "user":
        legacy = base.joinpath(f"{task}.prompt")
        if legacy.is_file():
            messages.append({"role": "user", "content": legacy.read_text(encoding="utf-8")})
    if not messages or messages[-1]["role"] != "user":
        raise EngineError("MISSING_PROMPT", f"user prompt for {task} not found")
    return messages


def load_prompt(task: str, prompt_dir: Optional[Path] = None) -> str:
    """Flatten the messages for ``task`` into one prompt string."""
    return "\n\n".join(m["content"].strip() for m in load_messages(task, prompt_dir))


__all__ = ["load_messages", "load_prompt"]
