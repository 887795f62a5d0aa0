"""Tests for key-value persistence, legacy migration and backups."""

import json

import pytest

from tender_desk.config import DEFAULT_SOURCES
from tender_desk.models.records import AIProvider, TeamMember
from tender_desk.models.types import DocumentCategory, Tender
from tender_desk.state.persistence import (
    JsonFileStorage,
    MemoryStorage,
    export_backup,
    import_backup,
    load_state,
    migrate_watchlist_item,
    open_store,
)
from tender_desk.state.store import TenderStore

LEGACY_ITEM = {
    "tender": {
        "id": "t-1",
        "title": "Road works",
        "summary": "Rehabilitation",
        "publishedDate": "2025-06-01T00:00:00",
        "closingDate": "2025-07-15T00:00:00",
        "isClosingDateEstimated": True,
        "link": "https://example.org/t-1",
        "source": "UNGM",
    },
    "status": "Applying",
    "addedAt": "2025-06-02T10:00:00",
    "quoteItems": [{"id": "q1", "itemName": "Asphalt", "quantity": 3, "unitPrice": 100}],
    "financialDetails": {"vatPercentage": 15, "clientId": "c1"},
    "documents": [{"id": "d1", "name": "boq.pdf", "category": "Technical", "uploadedBy": "A", "uploadedAt": ""}],
    "clientDocuments": [
        {"id": "d1", "name": "boq.pdf", "uploadedBy": "A", "uploadedAt": ""},
        {"id": "d2", "name": "rfq.pdf", "uploadedBy": "B", "uploadedAt": ""},
    ],
    "activityLog": [{
        "id": "a1", "timestamp": "2025-06-02T10:00:00", "type": "Tender Added",
        "description": "added", "tenderId": "t-1", "tenderTitle": "Road works",
    }],
}


def _tender():
    return Tender(
        id="t-9", title="Laptops", summary="", published_date="2025-06-01", closing_date="2025-07-01",
        is_closing_date_estimated=False, link="#", source="Feed",
    )


def test_migrate_folds_client_documents():
    migrated = migrate_watchlist_item(LEGACY_ITEM)
    assert "clientDocuments" not in migrated
    assert [d["id"] for d in migrated["documents"]] == ["d1", "d2"]
    assert migrated["documents"][1]["category"] == DocumentCategory.CLIENT.value
    assert "clientDocuments" in LEGACY_ITEM


def test_migrate_leaves_current_items_alone():
    item = {"tender": {"id": "x"}, "documents": []}
    assert migrate_watchlist_item(item) is item


def test_load_state_reads_camel_case_and_rewrites_watchlist():
    storage = MemoryStorage({"watchlist": [LEGACY_ITEM], "teamMembers": [{"id": "m1", "name": "Amira"}]})
    state = load_state(storage)

    (item,) = state.watchlist
    assert item.tender.closing_date == "2025-07-15T00:00:00"
    assert item.tender.is_closing_date_estimated is True
    assert item.quote_items[0].item_name == "Asphalt"
    assert item.tender_value() == 345.0
    assert [d.id for d in item.documents] == ["d1", "d2"]
    assert item.activity_log[0].tender_title == "Road works"
    assert state.team_members == [TeamMember(id="m1", name="Amira")]

    rewritten = storage.get("watchlist")
    assert "clientDocuments" not in rewritten[0]
    assert len(rewritten[0]["documents"]) == 2


def test_missing_keys_fall_back_to_defaults():
    state = load_state(MemoryStorage())
    assert [s.url for s in state.sources] == [s["url"] for s in DEFAULT_SOURCES]
    assert state.watchlist == []
    assert state.po_counter == 0
    assert isinstance(state.ai_config.provider, AIProvider)


def test_persistence_writes_only_changed_keys():
    storage = MemoryStorage()
    store, persistence = open_store(storage)
    assert storage.keys() == []

    store.add_to_watchlist(_tender())
    assert storage.keys() == ["watchlist"]
    assert storage.get("watchlist")[0]["tender"]["id"] == "t-9"

    persistence.detach()
    store.add_source("https://feeds.example.org/x.json")
    assert "sources" not in storage.keys()


def test_json_file_storage_round_trip(tmp_path):
    storage = JsonFileStorage(tmp_path / "data")
    assert storage.get("watchlist") is None

    store, _ = open_store(storage)
    store.add_to_watchlist(_tender())
    store.set_current_user("m1")
    assert (tmp_path / "data" / "watchlist.json").exists()

    reloaded = load_state(JsonFileStorage(tmp_path / "data"))
    assert [i.tender.id for i in reloaded.watchlist] == ["t-9"]
    assert reloaded.current_user_id == "m1"


def test_corrupt_file_reads_as_missing(tmp_path):
    (tmp_path / "watchlist.json").write_text("{not json", encoding="utf-8")
    assert JsonFileStorage(tmp_path).get("watchlist") is None


def test_backup_round_trip():
    source, _ = open_store(MemoryStorage())
    source.add_team_member(TeamMember(id="m1", name="Amira"))
    source.add_to_watchlist(_tender(), assigned_team_member_id="m1")
    source.update_notes("t-9", "Check the BOQ")
    text = export_backup(source.state)
    assert json.loads(text)["version"] == 1

    target = TenderStore()
    seen = []
    target.subscribe(lambda state, keys: seen.append(keys))
    state = import_backup(target, text)

    assert target.state is state
    item = state.watchlist[0]
    assert item.notes == "Check the BOQ"
    assert item.assigned_team_member_id == "m1"
    assert len(item.activity_log) == 3
    assert "watchlist" in seen[0] and "team_members" in seen[0]


def test_import_rejects_non_object():
    with pytest.raises(ValueError):
        import_backup(TenderStore(), "[1, 2]")
