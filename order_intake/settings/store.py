from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

"""Local JSON key-value store for wizard settings and mapping templates.

One JSON object per file, namespaced keys:

- ``order_intake_settings``: ``{"pagination_limit": 25}``
- ``order_intake_templates_<customer>``: newest-first list of templates
"""

__all__ = [
    "DEFAULT_PAGINATION_LIMIT",
    "IntakeSettings",
    "JsonKeyValueStore",
    "MAX_TEMPLATES",
    "MappingTemplate",
    "SettingsStore",
    "TemplateStore",
]

logger = logging.getLogger(__name__)

SETTINGS_KEY = "order_intake_settings"
TEMPLATE_KEY_PREFIX = "order_intake_templates_"
DEFAULT_PAGINATION_LIMIT = 25
MAX_TEMPLATES = 5


class JsonKeyValueStore:
    """Minimal persistent key-value store backed by one JSON file.

    A missing or corrupt file reads as empty; the next write replaces it.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("settings file unreadable, starting empty: %s (%s)", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


@dataclass(frozen=True)
class IntakeSettings:
    pagination_limit: int = DEFAULT_PAGINATION_LIMIT


class SettingsStore:
    """Wizard settings; read when a wizard is built, written on edit."""

    def __init__(self, store: JsonKeyValueStore) -> None:
        self.store = store

    @classmethod
    def at(cls, path: Path | str) -> SettingsStore:
        return cls(JsonKeyValueStore(Path(path)))

    def load(self) -> IntakeSettings:
        raw = self.store.get(SETTINGS_KEY) or {}
        limit = raw.get("pagination_limit", DEFAULT_PAGINATION_LIMIT)
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            logger.warning("invalid pagination_limit %r, using %d", limit, DEFAULT_PAGINATION_LIMIT)
            limit = DEFAULT_PAGINATION_LIMIT
        return IntakeSettings(pagination_limit=limit)

    def save(self, settings: IntakeSettings) -> None:
        self.store.set(SETTINGS_KEY, asdict(settings))

    def update_pagination_limit(self, limit: int) -> IntakeSettings:
        if limit < 1:
            raise ValueError("pagination_limit must be >= 1")
        settings = IntakeSettings(pagination_limit=limit)
        self.save(settings)
        return settings


@dataclass(frozen=True)
class MappingTemplate:
    name: str
    header: list[str]
    mapping: dict[int, str]  # column index -> field key
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_json(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "header": list(self.header),
            # JSON object keys are strings
            "mapping": {str(k): v for k, v in self.mapping.items()},
            "created_at": self.created_at,
        }

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> MappingTemplate:
        return cls(
            name=str(raw.get("name", "")),
            header=[str(h) for h in raw.get("header", [])],
            mapping={int(k): str(v) for k, v in (raw.get("mapping") or {}).items()},
            created_at=str(raw.get("created_at", "")),
        )


def _header_signature(header: list[str]) -> list[str]:
    return [h.strip().lower() for h in header]


class TemplateStore:
    """Column-mapping templates per customer, newest first, at most MAX_TEMPLATES."""

    def __init__(self, store: JsonKeyValueStore) -> None:
        self.store = store

    @staticmethod
    def _key(customer: str) -> str:
        return f"{TEMPLATE_KEY_PREFIX}{customer}"

    def get_templates(self, customer: str = "default") -> list[MappingTemplate]:
        raw = self.store.get(self._key(customer)) or []
        templates = []
        for entry in raw:
            try:
                templates.append(MappingTemplate.from_json(entry))
            except (AttributeError, TypeError, ValueError):
                logger.warning("skipping malformed template for customer %s", customer)
        return templates

    def save_template(
        self,
        header: list[str],
        mapping: dict[int, str],
        customer: str = "default",
        name: str | None = None,
    ) -> MappingTemplate:
        template = MappingTemplate(
            name=name or f"{customer} {datetime.now(UTC):%Y-%m-%d %H:%M}",
            header=list(header),
            mapping=dict(mapping),
        )
        templates = [template, *self.get_templates(customer)][:MAX_TEMPLATES]
        self.store.set(self._key(customer), [t.to_json() for t in templates])
        logger.debug("saved mapping template for %s (%d kept)", customer, len(templates))
        return template

    def find_matching_template(self, header: list[str], customer: str = "default") -> MappingTemplate | None:
        """Newest template whose stored header equals ``header`` (trimmed, case-insensitive)."""
        signature = _header_signature(header)
        for template in self.get_templates(customer):
            if _header_signature(template.header) == signature:
                return template
        return None
