"""
Meez - Model Router.

Per-task generation settings. Structuring and scaling want near-greedy
decoding (copy what the source says); substitution rewrites get a little
room to rephrase.
"""

from typing import TypedDict


class TaskConfig(TypedDict, total=False):
    """Configuration for one kind of model call."""

    model: str
    temperature: float
    max_tokens: int


DEFAULT_MODEL = "gpt-4.1-mini"

TASK_CONFIGS: dict[str, TaskConfig] = {
    "structure": {
        "temperature": 0.1,
        "max_tokens": 8000,
    },
    "structure_images": {
        "temperature": 0.1,
        "max_tokens": 8000,
    },
    "substitution": {
        "temperature": 0.3,
        "max_tokens": 4000,
    },
    "scaling": {
        "temperature": 0.0,
        "max_tokens": 4000,
    },
}

DEFAULT_CONFIG: TaskConfig = {
    "temperature": 0.2,
    "max_tokens": 4000,
}


def get_task_config(task: str, model: str | None = None) -> TaskConfig:
    """
    Get model configuration for a task.

    Args:
        task: Task name ("structure", "substitution", ...)
        model: Model configured for the service; falls back to DEFAULT_MODEL

    Returns:
        A fresh TaskConfig (safe to mutate)
    """
    config: TaskConfig = dict(TASK_CONFIGS.get(task, DEFAULT_CONFIG))
    config["model"] = model or DEFAULT_MODEL
    return config
