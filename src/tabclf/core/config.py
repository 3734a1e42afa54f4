"""Smart-organize configuration and its persistence.

The config is a small JSON object kept in the key-value store under
``smartOrganizeConfig``.  The host writes it with camelCase keys; both
camelCase and snake_case are accepted on load and snake_case is written
back.

Usage::

    from tabclf.core.config import load_organize_config

    cfg = load_organize_config(store)
    cfg.min_group_size          # 2 unless the user changed it
    cfg = update_organize_config(store, {"closeDuplicates": False})
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from tabclf.core.defaults import DEFAULT_MIN_GROUP_SIZE, KEY_ORGANIZE_CONFIG
from tabclf.core.store import KeyValueStore

logger = logging.getLogger(__name__)


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _alias(snake: str, camel: str) -> AliasChoices:
    return AliasChoices(snake, camel)


def _to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


class SmartOrganizeConfig(BaseModel, frozen=True):
    """User-tunable knobs for one organize run."""

    close_duplicates: bool = Field(
        default=True,
        validation_alias=_alias("close_duplicates", "closeDuplicates"),
        description="Close duplicate tabs before grouping.",
    )
    min_group_size: int = Field(
        default=DEFAULT_MIN_GROUP_SIZE,
        ge=1,
        validation_alias=_alias("min_group_size", "minGroupSize"),
        description="Smallest category group that will be created.",
    )
    respect_user_categories: bool = Field(
        default=True,
        validation_alias=_alias("respect_user_categories", "respectUserCategories"),
        description="Honour explicit domain mappings and category rules.",
    )
    enable_smart_groups: bool = Field(
        default=True,
        validation_alias=_alias("enable_smart_groups", "enableSmartGroups"),
        description="Run the project / context cluster detectors.",
    )
    prioritize_recent: bool = Field(
        default=False,
        validation_alias=_alias("prioritize_recent", "prioritizeRecent"),
        description="Order tabs inside each group by most recent access.",
    )
    group_single_tabs: bool = Field(
        default=False,
        validation_alias=_alias("group_single_tabs", "groupSingleTabs"),
        description="Allow one-tab category groups.",
    )
    compact_labels: bool = Field(
        default=False,
        validation_alias=_alias("compact_labels", "compactLabels"),
        description="Label category groups with a short initialism.",
    )

    @property
    def effective_min_group_size(self) -> int:
        return 1 if self.group_single_tabs else self.min_group_size


def load_organize_config(store: KeyValueStore) -> SmartOrganizeConfig:
    """Read the persisted config, falling back to defaults.

    A malformed stored value is logged and replaced by defaults rather
    than failing the run.
    """
    raw = store.get(KEY_ORGANIZE_CONFIG)
    if not raw:
        return SmartOrganizeConfig()
    try:
        return SmartOrganizeConfig.model_validate(raw)
    except ValidationError:
        logger.warning("Invalid stored organize config, using defaults", exc_info=True)
        return SmartOrganizeConfig()


def save_organize_config(store: KeyValueStore, config: SmartOrganizeConfig) -> None:
    store.set(KEY_ORGANIZE_CONFIG, config.model_dump(mode="json"))


def update_organize_config(
    store: KeyValueStore, patch: dict[str, Any]
) -> SmartOrganizeConfig:
    """Merge *patch* into the stored config, validate, persist, return it.

    Raises:
        pydantic.ValidationError: If the merged config is invalid; nothing
            is written in that case.
    """
    current = load_organize_config(store).model_dump()
    current.update({_to_snake(key): value for key, value in patch.items()})
    merged = SmartOrganizeConfig.model_validate(current)
    save_organize_config(store, merged)
    return merged
