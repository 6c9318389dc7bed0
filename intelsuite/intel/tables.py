"""
Editable lookup tables that drive the extraction pipeline.

Action and target maps are kept as explicit ordered lists of
(category, keywords) entries: the first category that matches wins, so
configured order is part of the behaviour and is never re-sorted.
"""

import copy
import json
import logging
from datetime import datetime
from typing import Optional, Protocol

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from intelsuite.core.config import (
    CONFIG_SETTING_KEY,
    DEFAULT_ACTION_MAP,
    DEFAULT_LOCATION_CODES,
    DEFAULT_MILITANT_GROUPS,
    DEFAULT_TARGET_MAP,
    LOCATION_CORRECTIONS,
)
from intelsuite.core.database import AppSetting, get_session, init_db
from intelsuite.data.schemas import ConfigurationPayload, LocationCode

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when an import payload does not have the expected shape."""


class KeywordMap:
    """Ordered (category, keywords) entries with case-insensitive substring lookup."""

    def __init__(self, entries: Optional[list[tuple[str, list[str]]]] = None):
        self._entries: list[tuple[str, list[str]]] = []
        for category, keywords in entries or []:
            self._entries.append((category, list(keywords)))

    @classmethod
    def from_dict(cls, mapping: dict[str, list[str]]) -> "KeywordMap":
        return cls(list(mapping.items()))

    def to_dict(self) -> dict[str, list[str]]:
        return {category: list(keywords) for category, keywords in self._entries}

    def items(self) -> list[tuple[str, list[str]]]:
        return list(self._entries)

    def categories(self) -> list[str]:
        return [category for category, _ in self._entries]

    def get(self, category: str) -> Optional[list[str]]:
        for name, keywords in self._entries:
            if name == category:
                return keywords
        return None

    def first_match(self, text_lower: str) -> Optional[str]:
        """Return the first category with a keyword contained in ``text_lower``."""
        for category, keywords in self._entries:
            if any(keyword in text_lower for keyword in keywords):
                return category
        return None

    def add_keyword(self, category: str, keyword: str) -> bool:
        keyword = keyword.lower().strip()
        if not keyword:
            return False
        keywords = self.get(category)
        if keywords is None:
            self._entries.append((category, [keyword]))
            return True
        if keyword in keywords:
            return False
        keywords.append(keyword)
        return True

    def remove_keyword(self, category: str, keyword: str) -> bool:
        keyword = keyword.lower().strip()
        keywords = self.get(category)
        if not keywords:
            return False
        remaining = [k for k in keywords if k.lower() != keyword]
        if len(remaining) == len(keywords):
            return False
        keywords[:] = remaining
        return True

    def __contains__(self, category: str) -> bool:
        return self.get(category) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other) -> bool:
        return isinstance(other, KeywordMap) and self._entries == other._entries


class ConfigurationStore(Protocol):
    """Persistence port for the editable tables."""

    def load(self) -> Optional[dict]: ...

    def save(self, payload: dict) -> bool: ...


class SqlConfigurationStore:
    """Stores the exported tables as one JSON document in ``app_settings``."""

    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url
        init_db(db_url)

    def load(self) -> Optional[dict]:
        session = get_session(self.db_url)
        try:
            setting = session.query(AppSetting).filter_by(key=CONFIG_SETTING_KEY).first()
            if setting is None:
                return None
            return json.loads(setting.value)
        except (SQLAlchemyError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read stored configuration, using defaults: {e}")
            return None
        finally:
            session.close()

    def save(self, payload: dict) -> bool:
        session = get_session(self.db_url)
        try:
            setting = session.query(AppSetting).filter_by(key=CONFIG_SETTING_KEY).first()
            value = json.dumps(payload)
            if setting:
                setting.value = value
                setting.updated_at = datetime.utcnow()
            else:
                session.add(AppSetting(key=CONFIG_SETTING_KEY, value=value))
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to save configuration: {e}")
            return False
        finally:
            session.close()


class ConfigurationTables:
    """
    Process-lifetime lookup tables: action keywords, target keywords,
    location codes and militant groups, plus the fixed location-name
    corrections.

    Mutators only touch memory; call ``save()`` to persist.
    """

    def __init__(self, store: Optional[ConfigurationStore] = None):
        self.store = store
        self.location_corrections = dict(LOCATION_CORRECTIONS)
        self._apply_defaults()

    def _apply_defaults(self) -> None:
        self.action_map = KeywordMap.from_dict(DEFAULT_ACTION_MAP)
        self.target_map = KeywordMap.from_dict(DEFAULT_TARGET_MAP)
        self.location_codes = {
            name: LocationCode(**data) for name, data in DEFAULT_LOCATION_CODES.items()
        }
        self.militant_groups = list(DEFAULT_MILITANT_GROUPS)

    def load(self) -> "ConfigurationTables":
        """Read persisted tables; anything missing or malformed falls back to defaults."""
        self._apply_defaults()
        if self.store is None:
            return self
        stored = self.store.load()
        if not stored:
            return self
        try:
            self._apply_payload(ConfigurationPayload.model_validate(stored))
        except ValidationError as e:
            logger.warning(f"Stored configuration is malformed, using defaults: {e}")
            self._apply_defaults()
        return self

    def save(self) -> bool:
        if self.store is None:
            logger.warning("No configuration store attached; tables not persisted")
            return False
        saved = self.store.save(self.export_configuration())
        if saved:
            logger.info("Engine configuration saved")
        return saved

    def reset_to_defaults(self) -> bool:
        self._apply_defaults()
        logger.info("Engine configuration reset to defaults")
        return self.save()

    def import_configuration(self, payload: dict) -> None:
        """Overwrite only the tables present in ``payload``."""
        try:
            parsed = ConfigurationPayload.model_validate(payload)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration payload: {e}") from e
        self._apply_payload(parsed)
        logger.info(
            "Imported configuration tables: "
            + ", ".join(sorted(parsed.model_dump(by_alias=True, exclude_none=True)))
        )

    def _apply_payload(self, parsed: ConfigurationPayload) -> None:
        if parsed.action_map is not None:
            self.action_map = KeywordMap.from_dict(parsed.action_map)
        if parsed.target_map is not None:
            self.target_map = KeywordMap.from_dict(parsed.target_map)
        if parsed.location_codes is not None:
            self.location_codes = dict(parsed.location_codes)
        if parsed.militant_groups is not None:
            self.militant_groups = list(parsed.militant_groups)

    def export_configuration(self) -> dict:
        return {
            "actionMap": self.action_map.to_dict(),
            "targetMap": self.target_map.to_dict(),
            "locationCodes": {
                name: loc.model_dump() for name, loc in self.location_codes.items()
            },
            "militantGroups": list(self.militant_groups),
        }

    def _keyword_map(self, table: str) -> KeywordMap:
        if table == "actions":
            return self.action_map
        if table == "targets":
            return self.target_map
        raise ConfigurationError(f"Unknown keyword table '{table}'. Use 'actions' or 'targets'.")

    def add_keyword(self, table: str, category: str, keyword: str) -> bool:
        return self._keyword_map(table).add_keyword(category, keyword)

    def remove_keyword(self, table: str, category: str, keyword: str) -> bool:
        return self._keyword_map(table).remove_keyword(category, keyword)

    def add_group(self, name: str) -> bool:
        group = name.upper().strip()
        if not group or group in self.militant_groups:
            return False
        self.militant_groups.append(group)
        return True

    def remove_group(self, name: str) -> bool:
        group = name.upper().strip()
        remaining = [g for g in self.militant_groups if g.upper() != group]
        if not group or len(remaining) == len(self.militant_groups):
            return False
        self.militant_groups = remaining
        return True

    def snapshot(self) -> "ConfigurationTables":
        """Deep copy for a single conversion, isolated from concurrent admin edits."""
        clone = ConfigurationTables.__new__(ConfigurationTables)
        clone.store = None
        clone.location_corrections = dict(self.location_corrections)
        clone.action_map = copy.deepcopy(self.action_map)
        clone.target_map = copy.deepcopy(self.target_map)
        clone.location_codes = dict(self.location_codes)
        clone.militant_groups = list(self.militant_groups)
        return clone
