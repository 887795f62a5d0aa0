"""Key-value persistence for the store.

Each collection or settings object lives under its own stable key.
``StorePersistence`` subscribes to a ``TenderStore`` and rewrites only the
keys a commit touched; ``load_state`` rebuilds a ``StoreState`` with defaults
for anything missing and runs the legacy-shape migrations first.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Protocol

from ..config import AI_API_KEY, AI_MODEL, AI_PROVIDER, DATA_DIR, DEFAULT_SOURCES
from ..models.records import (
    Account,
    AIConfig,
    AIProvider,
    CatalogItem,
    Client,
    CompanyProfile,
    DocumentSettings,
    Expense,
    JournalEntry,
    MailSettings,
    Notification,
    Shipment,
    Task,
    TaskTemplate,
    TeamMember,
    Vendor,
)
from ..models.types import DocumentCategory, Source, WatchlistItem
from .store import STATE_KEYS, StoreState, TenderStore

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryStorage:
    """Dict-backed storage, values kept as JSON text like the file store."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, str] = {k: json.dumps(v) for k, v in (initial or {}).items()}

    def get(self, key: str) -> Any:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStorage:
    """One ``<key>.json`` file per key under ``root``."""

    def __init__(self, root: Path | str = DATA_DIR):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load %s: %s", path, e)
            return None

    def set(self, key: str, value: Any) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(value, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)


# ── (De)serialisation ───────────────────────────────────────────────

_LIST_TYPES: dict[str, Callable[[dict], Any]] = {
    "sources": Source.from_dict,
    "watchlist": WatchlistItem.from_dict,
    "catalog": CatalogItem.from_dict,
    "vendors": Vendor.from_dict,
    "team_members": TeamMember.from_dict,
    "clients": Client.from_dict,
    "shipments": Shipment.from_dict,
    "tasks": Task.from_dict,
    "task_templates": TaskTemplate.from_dict,
    "expenses": Expense.from_dict,
    "notifications": Notification.from_dict,
    "journal_entries": JournalEntry.from_dict,
    "chart_of_accounts": Account.from_dict,
}

_OBJECT_TYPES: dict[str, Callable[[dict | None], Any]] = {
    "company_profile": CompanyProfile.from_dict,
    "ai_config": AIConfig.from_dict,
    "document_settings": DocumentSettings.from_dict,
    "mail_settings": MailSettings.from_dict,
}

# Keys written by the browser build, mapped to the names used here.
_LEGACY_KEYS = {
    "teamMembers": "team_members",
    "taskTemplates": "task_templates",
    "journalEntries": "journal_entries",
    "chartOfAccounts": "chart_of_accounts",
    "companyProfile": "company_profile",
    "aiConfig": "ai_config",
    "documentSettings": "document_settings",
    "mailSettings": "mail_settings",
    "currentUserId": "current_user_id",
    "poCounter": "po_counter",
}


def serialize_value(key: str, value: Any) -> Any:
    if key in _LIST_TYPES:
        return [record.to_dict() for record in value]
    if key in _OBJECT_TYPES:
        return value.to_dict()
    return value


def migrate_watchlist_item(data: dict) -> dict:
    """Fold the deprecated ``clientDocuments`` list into ``documents``.

    Entries keep their ids; one already present in ``documents`` is not
    copied again. Documents without a category become client documents.
    """
    legacy = data.get("clientDocuments")
    if legacy is None:
        legacy = data.get("client_documents")
    if legacy is None:
        return data

    migrated = {k: v for k, v in data.items() if k not in ("clientDocuments", "client_documents")}
    documents = list(migrated.get("documents") or [])
    seen = {d.get("id") for d in documents}
    for doc in legacy:
        if doc.get("id") in seen:
            continue
        doc = dict(doc)
        doc.setdefault("category", DocumentCategory.CLIENT.value)
        documents.append(doc)
        seen.add(doc.get("id"))
    migrated["documents"] = documents
    logger.info("Migrated %d legacy client documents for tender %s", len(legacy), data.get("tender", {}).get("id"))
    return migrated


def migrate_raw_state(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply every legacy-shape migration to a raw key -> JSON mapping."""
    result = dict(raw)
    for old, new in _LEGACY_KEYS.items():
        if old in result and result.get(new) is None:
            result[new] = result.pop(old)
    if result.get("watchlist"):
        result["watchlist"] = [migrate_watchlist_item(item) for item in result["watchlist"]]
    return result


def default_ai_config() -> AIConfig:
    """AI settings seeded from the environment for a fresh workspace."""
    try:
        provider = AIProvider(AI_PROVIDER)
    except ValueError:
        logger.warning("Unknown AI_PROVIDER %r, using %s", AI_PROVIDER, AIProvider.GEMINI.value)
        provider = AIProvider.GEMINI
    return AIConfig(provider=provider, api_key=AI_API_KEY, model=AI_MODEL or None)


def state_from_raw(raw: dict[str, Any]) -> StoreState:
    raw = migrate_raw_state(raw)
    values: dict[str, Any] = {}
    for key, factory in _LIST_TYPES.items():
        items = raw.get(key)
        if items is not None:
            values[key] = [factory(item) for item in items]
    for key, factory in _OBJECT_TYPES.items():
        values[key] = factory(raw.get(key))
    if raw.get("ai_config") is None:
        values["ai_config"] = default_ai_config()
    if raw.get("sources") is None:
        values["sources"] = [Source.from_dict(s) for s in DEFAULT_SOURCES]
    values["current_user_id"] = raw.get("current_user_id")
    values["po_counter"] = int(raw.get("po_counter") or 0)
    return StoreState(**values)


def state_to_raw(state: StoreState) -> dict[str, Any]:
    return {key: serialize_value(key, getattr(state, key)) for key in STATE_KEYS}


def load_state(storage: KeyValueStorage) -> StoreState:
    """Rehydrate a snapshot; missing keys fall back to their defaults."""
    raw = {key: storage.get(key) for key in STATE_KEYS}
    for old in _LEGACY_KEYS:
        value = storage.get(old)
        if value is not None:
            raw[old] = value
    watchlist = raw.get("watchlist")
    needs_rewrite = bool(watchlist) and any(
        "clientDocuments" in item or "client_documents" in item for item in watchlist
    )
    state = state_from_raw(raw)
    if needs_rewrite:
        storage.set("watchlist", serialize_value("watchlist", state.watchlist))
    logger.info("Loaded state: %d sources, %d watched tenders", len(state.sources), len(state.watchlist))
    return state


class StorePersistence:
    """Store subscriber that writes each changed key to storage."""

    def __init__(self, store: TenderStore, storage: KeyValueStorage):
        self.storage = storage
        self._unsubscribe = store.subscribe(self._on_change)

    def _on_change(self, state: StoreState, keys: frozenset) -> None:
        for key in sorted(keys):
            self.storage.set(key, serialize_value(key, getattr(state, key)))
        logger.debug("Persisted %s", ", ".join(sorted(keys)))

    def detach(self) -> None:
        self._unsubscribe()


def open_store(storage: KeyValueStorage | None = None, **store_kwargs) -> tuple[TenderStore, StorePersistence]:
    """Load a store from ``storage`` and keep it persisted there."""
    storage = storage or JsonFileStorage()
    store = TenderStore(load_state(storage), **store_kwargs)
    return store, StorePersistence(store, storage)


# ── Backup ──────────────────────────────────────────────────────────


def export_backup(state: StoreState) -> str:
    return json.dumps({"version": BACKUP_VERSION, **state_to_raw(state)}, ensure_ascii=False, indent=2)


def import_backup(store: TenderStore, text: str) -> StoreState:
    """Replace the store's whole state with a backup document.

    Raises:
        ValueError: the text is not a JSON object.
    """
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Backup must be a JSON object")
    data.pop("version", None)
    state = state_from_raw(data)
    store.replace_state(state)
    return state
