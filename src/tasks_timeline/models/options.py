"""
User-facing options for the task pipeline.

Field names are snake_case; the camelCase keys used by Obsidian plugin
settings (``hideStatusTasks``, ``taskStatusOrder``, ...) are accepted as
aliases. When loading a settings file, keys this core does not model
(``dateFormat``, ``styles``, ...) are skipped so an exported plugin
``data.json`` loads as-is; in-process updates still reject unknown keys.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

log = logging.getLogger(__name__)

DEFAULT_STATUS_ORDER = [
    "overdue",
    "due",
    "scheduled",
    "start",
    "process",
    "unplanned",
    "done",
    "cancelled",
]


class OptionsError(ValueError):
    """Raised when user options cannot be loaded or validated."""


class UserOptions(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    # Document-level filters
    include_paths: List[str] = Field(default_factory=list)
    exclude_paths: List[str] = Field(default_factory=list)
    file_include_tags: List[str] = Field(default_factory=list)
    file_exclude_tags: List[str] = Field(default_factory=list)

    # Task-level filters
    hide_status_tasks: List[str] = Field(default_factory=list)
    use_include_tags: bool = False
    task_include_tags: List[str] = Field(default_factory=list)
    use_exclude_tags: bool = False
    task_exclude_tags: List[str] = Field(default_factory=list)
    filter_empty: bool = True

    # Modifiers
    forward: bool = True
    task_status_order: List[str] = Field(default_factory=lambda: list(DEFAULT_STATUS_ORDER))
    daily_note_format: str = "YYYY-MM-DD"
    daily_note_folder: str = ""

    # Sorting
    sort: str = "status(ascending)"

    @field_validator("hide_status_tasks")
    @classmethod
    def _normalize_markers(cls, value: List[str]) -> List[str]:
        # "[ ]" is how the settings UI spells the todo marker
        return [" " if m.strip() in ("[ ]", "") else m.strip() for m in value if m]

    def merged(self, partial: Mapping[str, Any]) -> UserOptions:
        """Return a copy with the given fields (by name or alias) replaced."""
        data = self.model_dump()
        data.update(_normalize_keys(partial))
        try:
            return UserOptions.model_validate(data)
        except ValidationError as e:
            raise OptionsError(str(e)) from e


def _normalize_keys(partial: Mapping[str, Any]) -> Dict[str, Any]:
    """Map camelCase aliases onto field names; unknown keys are kept for validation to reject."""
    by_alias = {to_camel(name): name for name in UserOptions.model_fields}
    return {by_alias.get(key, key): value for key, value in partial.items()}


def load_options(path: Path) -> UserOptions:
    """
    Load options from a YAML or JSON file.

    Raises:
        OptionsError: If the file is missing, unparsable or fails validation.
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise OptionsError(f"Cannot read options file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise OptionsError(f"Invalid options file {path}: {e}") from e

    if raw is None:
        return UserOptions()
    if not isinstance(raw, dict):
        raise OptionsError(f"Options file {path} must contain a mapping")
    known = set(UserOptions.model_fields) | {to_camel(name) for name in UserOptions.model_fields}
    ignored = sorted(str(key) for key in raw if key not in known)
    if ignored:
        log.info("Ignoring options not used by tasks-timeline: %s", ", ".join(ignored))
    return UserOptions().merged({key: value for key, value in raw.items() if key in known})
