"""Tests for record (de)serialisation and derived values."""

from tender_desk.models.records import (
    AIConfig,
    AIProvider,
    CatalogItem,
    DocumentSettings,
    JournalEntry,
    JournalEntryTransaction,
    Task,
    TaskStatus,
)
from tender_desk.models.types import (
    FinancialDetails,
    Invoice,
    InvoiceStatus,
    QuoteItem,
    RiskAssessment,
    RiskLevel,
    TechnicalOfferType,
    Tender,
    TenderStatus,
    WatchlistItem,
)

TENDER = Tender(
    id="t-1", title="Laptops", summary="", published_date="2025-06-01", closing_date="2025-07-01",
    is_closing_date_estimated=True, link="#", source="Feed",
)


def test_quote_item_accepts_camel_case_and_strings():
    item = QuoteItem.from_dict({
        "id": "q1", "itemName": "Laptop", "quantity": "2", "unitPrice": "450.5", "cost": None,
        "catalogItemRef": "c1", "technicalDetails": {"warranty": "1 year"},
    })
    assert item.item_name == "Laptop"
    assert item.line_total == 901.0
    assert item.cost is None
    assert item.line_cost == 0.0
    assert item.catalog_item_ref == "c1"
    assert item.technical_details == {"warranty": "1 year"}


def test_tender_value_includes_delivery_installation_and_vat():
    item = WatchlistItem(
        tender=TENDER,
        quote_items=[QuoteItem(id="a", item_name="x", quantity=2, unit_price=100.0, cost=60.0)],
        financial_details=FinancialDetails(delivery_cost=30.0, installation_cost=20.0, vat_percentage=5),
    )
    assert item.quote_subtotal() == 200.0
    assert item.quote_cost() == 120.0
    assert item.tender_value() == 260.0


def test_paid_revenue_counts_paid_invoices_only():
    invoices = [
        Invoice(id="1", invoice_number="A", issue_date="", due_date="", description="", amount=100.0,
                status=InvoiceStatus.PAID),
        Invoice(id="2", invoice_number="B", issue_date="", due_date="", description="", amount=50.0,
                status=InvoiceStatus.SENT),
    ]
    assert WatchlistItem(tender=TENDER, invoices=invoices).paid_revenue() == 100.0


def test_watchlist_item_round_trip():
    item = WatchlistItem(
        tender=TENDER,
        status=TenderStatus.SUBMITTED,
        technical_offer_type=TechnicalOfferType.SERVICES,
        risk_assessment=RiskAssessment(overall_risk=RiskLevel.LOW, identified_risks=["none"]),
    )
    data = item.to_dict()
    assert data["tender"]["is_closing_date_estimated"] is True
    restored = WatchlistItem.from_dict(data)
    assert restored == item


def test_watchlist_item_defaults_from_sparse_dict():
    item = WatchlistItem.from_dict({"tender": {"id": "t-2"}})
    assert item.status == TenderStatus.WATCHING
    assert item.category == "Uncategorized"
    assert item.financial_details == FinancialDetails()
    assert item.risk_assessment is None


def test_risk_assessment_from_camel_case():
    risk = RiskAssessment.from_dict({"overallRisk": "High", "confidenceScore": "0.4"})
    assert risk.overall_risk == RiskLevel.HIGH
    assert risk.confidence_score == 0.4


def test_settings_and_records():
    settings = DocumentSettings.from_dict({"accentColor": "#ff0000", "fontSize": 12})
    assert settings.accent_color == "#ff0000"
    assert settings.font_size == 12
    assert settings.footer_text == DocumentSettings().footer_text

    config = AIConfig.from_dict({"provider": "DeepSeek", "apiKey": "k"})
    assert config.provider == AIProvider.DEEPSEEK
    assert config.to_dict() == {"provider": "DeepSeek", "api_key": "k", "model": None}

    catalog = CatalogItem.from_dict({"id": "c", "itemName": "Dock", "salePrice": 80, "category": ""})
    assert (catalog.sale_price, catalog.category) == (80.0, "Uncategorized")

    task = Task.from_dict({"id": "t", "title": "x", "assignedToId": "m1", "status": "In Progress"})
    assert (task.assigned_to_id, task.status) == ("m1", TaskStatus.IN_PROGRESS)


def test_journal_entry_balance():
    balanced = JournalEntry(id="j", date="", description="", transactions=[
        JournalEntryTransaction(account_id="a", debit=100.0),
        JournalEntryTransaction(account_id="b", credit=100.0),
    ])
    assert balanced.is_balanced()
    balanced.transactions.append(JournalEntryTransaction(account_id="c", debit=0.01))
    assert not balanced.is_balanced()
