"""Dataclasses for discovered tenders and the watchlist workspace.

Records serialise to snake_case dicts. ``from_dict`` also accepts the
camelCase keys written by the original browser storage, so old backups load
unchanged.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum


def _get(data: dict, key: str, default=None):
    """Read ``key`` in snake_case, falling back to its camelCase spelling."""
    if key in data:
        return data[key]
    head, *rest = key.split("_")
    camel = head + "".join(part.title() for part in rest)
    return data.get(camel, default)


def _num(value, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    return float(value)


class TenderStatus(str, Enum):
    WATCHING = "Watching"
    APPLYING = "Applying"
    SUBMITTED = "Submitted"
    WON = "Won"
    LOST = "Lost"
    ARCHIVED = "Archived"


OPEN_STATUSES = (TenderStatus.WATCHING, TenderStatus.APPLYING, TenderStatus.SUBMITTED)


class ActivityType(str, Enum):
    TENDER_ADDED = "Tender Added"
    STATUS_CHANGE = "Status Change"
    NOTE_UPDATED = "Note Updated"
    QUOTE_ITEM_ADDED = "Quote Item Added"
    QUOTE_ITEM_REMOVED = "Quote Item Removed"
    QUOTE_ITEM_UPDATED = "Quote Item Updated"
    FINANCIALS_UPDATED = "Financials Updated"
    PAYMENT_METHOD_UPDATED = "Payment Method Updated"
    INVOICE_CREATED = "Invoice Created"
    INVOICE_UPDATED = "Invoice Updated"
    INVOICE_REMOVED = "Invoice Removed"
    TENDER_ASSIGNED = "Tender Assigned"
    TASK_ASSIGNED = "Task Assigned"
    PO_CREATED = "Purchase Order Created"
    DOCUMENT_UPLOADED = "Document Uploaded"
    DOCUMENT_REMOVED = "Document Removed"
    EXPENSE_ADDED = "Expense Added"
    EXPENSE_UPDATED = "Expense Updated"
    EXPENSE_REMOVED = "Expense Removed"
    TEMPLATE_APPLIED = "Template Applied"
    RISK_ASSESSMENT_GENERATED = "Risk Assessment Generated"
    DOCUMENT_ANALYZED = "Document Analyzed"
    COMMENT_ADDED = "Comment Added"
    USER_MENTIONED = "User Mentioned"


class DocumentStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class DocumentCategory(str, Enum):
    CLIENT = "Client Documents"
    TECHNICAL = "Technical"
    FINANCIAL = "Financial"
    LEGAL = "Legal"
    CORRESPONDENCE = "Correspondence"
    GENERATED = "Generated Offers"
    PURCHASE_ORDER = "Purchase Orders"
    CONTRACT = "Contracts"
    GOODS_RECEIVED_NOTE = "Goods Received Notes"


class InvoiceStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    PAID = "Paid"
    OVERDUE = "Overdue"


class TechnicalOfferType(str, Enum):
    GOODS = "Goods"
    SERVICES = "Services"
    CONSULTANCY = "Consultancy"


class POStatus(str, Enum):
    DRAFT = "Draft"
    ISSUED = "Issued"
    COMPLETED = "Completed"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# ── Discovery ───────────────────────────────────────────────────────


@dataclass
class Source:
    """One feed endpoint."""

    id: str
    url: str

    @classmethod
    def from_dict(cls, data: dict) -> Source:
        return cls(id=data["id"], url=data["url"])

    def to_dict(self) -> dict:
        return {"id": self.id, "url": self.url}


@dataclass(frozen=True)
class Tender:
    """A procurement opportunity as fetched from a feed.

    Dates are ISO-8601 strings. ``id`` is the dedup key: the feed id, else the
    link, else the title.
    """

    id: str
    title: str
    summary: str
    published_date: str
    closing_date: str
    is_closing_date_estimated: bool
    link: str
    source: str

    @classmethod
    def from_dict(cls, data: dict) -> Tender:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            summary=data.get("summary", ""),
            published_date=_get(data, "published_date", ""),
            closing_date=_get(data, "closing_date", ""),
            is_closing_date_estimated=bool(_get(data, "is_closing_date_estimated", False)),
            link=data.get("link", ""),
            source=data.get("source", ""),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ActivityLog:
    """One audit-trail entry. Never edited after creation."""

    id: str
    timestamp: str
    type: ActivityType
    description: str
    tender_id: str
    tender_title: str

    @classmethod
    def from_dict(cls, data: dict) -> ActivityLog:
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            type=ActivityType(data["type"]),
            description=data.get("description", ""),
            tender_id=_get(data, "tender_id", ""),
            tender_title=_get(data, "tender_title", ""),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type.value,
            "description": self.description,
            "tender_id": self.tender_id,
            "tender_title": self.tender_title,
        }


# ── Workspace records ───────────────────────────────────────────────


@dataclass
class QuoteItem:
    id: str
    item_name: str
    description: str = ""
    quantity: float = 1
    unit_price: float = 0.0
    cost: float | None = None
    manufacturer: str | None = None
    model: str | None = None
    uom: str | None = None
    technical_details: dict = field(default_factory=dict)
    catalog_item_ref: str | None = None
    item_type: str = "Goods"  # "Goods" | "Services"
    hsn_code: str | None = None

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price

    @property
    def line_cost(self) -> float:
        return (self.cost or 0.0) * self.quantity

    @classmethod
    def from_dict(cls, data: dict) -> QuoteItem:
        return cls(
            id=data["id"],
            item_name=_get(data, "item_name", ""),
            description=data.get("description", ""),
            quantity=_num(data.get("quantity"), 1),
            unit_price=_num(_get(data, "unit_price")),
            cost=None if data.get("cost") is None else _num(data.get("cost")),
            manufacturer=data.get("manufacturer"),
            model=data.get("model"),
            uom=data.get("uom"),
            technical_details=_get(data, "technical_details") or {},
            catalog_item_ref=_get(data, "catalog_item_ref"),
            item_type=_get(data, "item_type", "Goods") or "Goods",
            hsn_code=_get(data, "hsn_code"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Invoice:
    id: str
    invoice_number: str
    issue_date: str
    due_date: str
    description: str
    amount: float
    status: InvoiceStatus = InvoiceStatus.DRAFT

    @classmethod
    def from_dict(cls, data: dict) -> Invoice:
        return cls(
            id=data["id"],
            invoice_number=_get(data, "invoice_number", ""),
            issue_date=_get(data, "issue_date", ""),
            due_date=_get(data, "due_date", ""),
            description=data.get("description", ""),
            amount=_num(data.get("amount")),
            status=InvoiceStatus(data.get("status", InvoiceStatus.DRAFT.value)),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class FinancialDetails:
    """Quote header and commercial terms for a watched tender."""

    client_id: str | None = None
    quote_number: str | None = None
    issue_date: str | None = None
    valid_till: str | None = None
    ship_to_name: str | None = None
    ship_to_address: str | None = None
    ship_to_email: str | None = None
    ship_to_phone: str | None = None
    itb_ref: str | None = None
    itb_date: str | None = None
    incoterms: str | None = None
    currency: str | None = None
    amount_in_words: str | None = None
    terms_and_conditions: str | None = None
    payment_method: str | None = None
    delivery_cost: float | None = None
    installation_cost: float | None = None
    vat_percentage: float | None = None
    installation_and_training: str | None = None
    validity: str | None = None
    delivery_terms: str | None = None
    remarks: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> FinancialDetails:
        data = data or {}
        kwargs = {}
        for name in cls.__dataclass_fields__:
            value = _get(data, name)
            if value is not None:
                kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DocumentAnalysis:
    summary: str
    key_requirements: list[str] = field(default_factory=list)
    deadlines: list[str] = field(default_factory=list)
    risks_or_red_flags: list[str] = field(default_factory=list)
    generated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> DocumentAnalysis:
        return cls(
            summary=data.get("summary", ""),
            key_requirements=list(_get(data, "key_requirements") or []),
            deadlines=list(data.get("deadlines") or []),
            risks_or_red_flags=list(_get(data, "risks_or_red_flags") or []),
            generated_at=_get(data, "generated_at", ""),
        )


@dataclass
class ManagedDocument:
    id: str
    name: str
    category: DocumentCategory
    uploaded_by: str
    uploaded_at: str
    status: DocumentStatus = DocumentStatus.COMPLETED
    file_name: str | None = None
    file_data: str | None = None  # base64
    mime_type: str | None = None
    is_generated: bool = False
    analysis: DocumentAnalysis | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ManagedDocument:
        analysis = data.get("analysis")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            category=DocumentCategory(data.get("category", DocumentCategory.CLIENT.value)),
            uploaded_by=_get(data, "uploaded_by", ""),
            uploaded_at=_get(data, "uploaded_at", ""),
            status=DocumentStatus(data.get("status", DocumentStatus.COMPLETED.value)),
            file_name=_get(data, "file_name"),
            file_data=_get(data, "file_data"),
            mime_type=_get(data, "mime_type"),
            is_generated=bool(_get(data, "is_generated", False)),
            analysis=DocumentAnalysis.from_dict(analysis) if analysis else None,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class POItem:
    id: str
    description: str
    quantity: float
    unit_price: float
    quote_item_ref: str
    uom: str | None = None
    hsn_code: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> POItem:
        return cls(
            id=data["id"],
            description=data.get("description", ""),
            quantity=_num(data.get("quantity"), 1),
            unit_price=_num(_get(data, "unit_price")),
            quote_item_ref=_get(data, "quote_item_ref", ""),
            uom=data.get("uom"),
            hsn_code=_get(data, "hsn_code"),
        )


@dataclass
class PurchaseOrder:
    id: str
    po_number: str
    issue_date: str
    vendor_id: str | None
    status: POStatus = POStatus.DRAFT
    items: list[POItem] = field(default_factory=list)

    @property
    def total(self) -> float:
        return sum(item.quantity * item.unit_price for item in self.items)

    @classmethod
    def from_dict(cls, data: dict) -> PurchaseOrder:
        return cls(
            id=data["id"],
            po_number=_get(data, "po_number", ""),
            issue_date=_get(data, "issue_date", ""),
            vendor_id=_get(data, "vendor_id"),
            status=POStatus(data.get("status", POStatus.DRAFT.value)),
            items=[POItem.from_dict(i) for i in data.get("items") or []],
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RiskAssessment:
    overall_risk: RiskLevel
    identified_risks: list[str] = field(default_factory=list)
    mitigation_strategies: list[str] = field(default_factory=list)
    confidence_score: float = 0.0
    generated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> RiskAssessment:
        return cls(
            overall_risk=RiskLevel(_get(data, "overall_risk", RiskLevel.MEDIUM.value)),
            identified_risks=list(_get(data, "identified_risks") or []),
            mitigation_strategies=list(_get(data, "mitigation_strategies") or []),
            confidence_score=_num(_get(data, "confidence_score")),
            generated_at=_get(data, "generated_at", ""),
        )


@dataclass
class Comment:
    id: str
    author_id: str
    text: str
    created_at: str
    mentions: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Comment:
        return cls(
            id=data["id"],
            author_id=_get(data, "author_id", ""),
            text=data.get("text", ""),
            created_at=_get(data, "created_at", ""),
            mentions=list(data.get("mentions") or []),
        )


@dataclass
class AIInsights:
    keywords: list[str] = field(default_factory=list)
    estimated_value: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> AIInsights:
        data = data or {}
        return cls(
            keywords=list(data.get("keywords") or []),
            estimated_value=_get(data, "estimated_value"),
        )


@dataclass
class WatchlistItem:
    """Mutable workspace wrapping a tender snapshot taken when it was added.

    ``activity_log`` is newest-first and only ever grows at the front.
    """

    tender: Tender
    status: TenderStatus = TenderStatus.WATCHING
    added_at: str = ""
    assigned_team_member_id: str | None = None
    category: str = "Uncategorized"
    quote_items: list[QuoteItem] = field(default_factory=list)
    invoices: list[Invoice] = field(default_factory=list)
    notes: str = ""
    financial_details: FinancialDetails = field(default_factory=FinancialDetails)
    technical_offer_type: TechnicalOfferType = TechnicalOfferType.GOODS
    documents: list[ManagedDocument] = field(default_factory=list)
    activity_log: list[ActivityLog] = field(default_factory=list)
    purchase_orders: list[PurchaseOrder] = field(default_factory=list)
    risk_assessment: RiskAssessment | None = None
    ai_summary: str = ""
    comments: list[Comment] = field(default_factory=list)
    ai_insights: AIInsights = field(default_factory=AIInsights)

    @property
    def tender_id(self) -> str:
        return self.tender.id

    def quote_subtotal(self) -> float:
        return sum(q.line_total for q in self.quote_items)

    def quote_cost(self) -> float:
        return sum(q.line_cost for q in self.quote_items)

    def tender_value(self) -> float:
        """Quote subtotal plus delivery, installation and VAT."""
        subtotal = self.quote_subtotal()
        details = self.financial_details
        delivery = details.delivery_cost or 0.0
        installation = details.installation_cost or 0.0
        vat = subtotal * ((details.vat_percentage or 0.0) / 100)
        return subtotal + delivery + installation + vat

    def paid_revenue(self) -> float:
        return sum(inv.amount for inv in self.invoices if inv.status == InvoiceStatus.PAID)

    @classmethod
    def from_dict(cls, data: dict) -> WatchlistItem:
        risk = _get(data, "risk_assessment")
        return cls(
            tender=Tender.from_dict(data["tender"]),
            status=TenderStatus(data.get("status", TenderStatus.WATCHING.value)),
            added_at=_get(data, "added_at", ""),
            assigned_team_member_id=_get(data, "assigned_team_member_id"),
            category=data.get("category") or "Uncategorized",
            quote_items=[QuoteItem.from_dict(q) for q in _get(data, "quote_items") or []],
            invoices=[Invoice.from_dict(i) for i in data.get("invoices") or []],
            notes=data.get("notes") or "",
            financial_details=FinancialDetails.from_dict(_get(data, "financial_details")),
            technical_offer_type=TechnicalOfferType(
                _get(data, "technical_offer_type") or TechnicalOfferType.GOODS.value
            ),
            documents=[ManagedDocument.from_dict(d) for d in data.get("documents") or []],
            activity_log=[ActivityLog.from_dict(a) for a in _get(data, "activity_log") or []],
            purchase_orders=[PurchaseOrder.from_dict(p) for p in _get(data, "purchase_orders") or []],
            risk_assessment=RiskAssessment.from_dict(risk) if risk else None,
            ai_summary=_get(data, "ai_summary") or "",
            comments=[Comment.from_dict(c) for c in data.get("comments") or []],
            ai_insights=AIInsights.from_dict(_get(data, "ai_insights")),
        )

    def to_dict(self) -> dict:
        result = asdict(self)
        result["activity_log"] = [log.to_dict() for log in self.activity_log]
        return result
