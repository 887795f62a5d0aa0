"""Flat CRUD records held by the store alongside the watchlist.

References between records (``vendor_id``, ``assigned_to_id``, ...) are plain
ids. Nothing enforces them; the store clears them when a parent is removed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum

from .types import _get, _num


class VendorType(str, Enum):
    GOODS_SUPPLIER = "Goods Supplier"
    SERVICE_PROVIDER = "Service Provider"
    LOGISTICS_PARTNER = "Logistics Partner"
    OTHER = "Other"


class VendorDocumentCategory(str, Enum):
    QUOTATION = "Quotation"
    PROFORMA_INVOICE = "Proforma Invoice"
    INVOICE = "Invoice"
    LICENSE = "License"
    CONTRACT = "Contract"
    CERTIFICATE = "Certificate"
    OTHER = "Other"


class TeamMemberRole(str, Enum):
    ADMIN = "Admin"
    MANAGER = "Manager"
    MEMBER = "Member"


class InteractionType(str, Enum):
    EMAIL = "Email"
    CALL = "Call"
    MEETING = "Meeting"
    NOTE = "Note"


class ClientDocumentCategory(str, Enum):
    CONTRACT = "Contract"
    NDA = "Non-Disclosure Agreement"
    RFQ = "Request for Quotation"
    INVOICE = "Invoice"
    CORRESPONDENCE = "Correspondence"
    OTHER = "Other"


class ShipmentStatus(str, Enum):
    PENDING = "Pending"
    IN_TRANSIT = "In Transit"
    DELIVERED = "Delivered"


class TaskStatus(str, Enum):
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class NotificationType(str, Enum):
    DEADLINE_APPROACHING = "Deadline Approaching"
    TASK_ASSIGNED = "Task Assigned"
    STATUS_CHANGED = "Status Changed"
    INVOICE_OVERDUE = "Invoice Overdue"
    TASK_OVERDUE = "Task Overdue"
    USER_MENTIONED = "User Mentioned"


class AccountType(str, Enum):
    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSE = "Expense"


class AIProvider(str, Enum):
    GEMINI = "Google Gemini"
    OPENAI = "OpenAI (ChatGPT)"
    DEEPSEEK = "DeepSeek"
    ANTHROPIC = "Anthropic (Claude)"


# ── Catalog & vendors ───────────────────────────────────────────────


@dataclass
class CatalogItemDocument:
    id: str
    name: str
    data: str
    mime_type: str

    @classmethod
    def from_dict(cls, data: dict) -> CatalogItemDocument:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            data=data.get("data", ""),
            mime_type=_get(data, "mime_type", ""),
        )


@dataclass
class CatalogItem:
    id: str
    item_name: str
    item_type: str = "Goods"
    category: str = "Uncategorized"
    description: str = ""
    manufacturer: str | None = None
    model: str | None = None
    sale_price: float = 0.0
    cost: float = 0.0
    uom: str | None = None
    vendor_id: str | None = None
    assigned_person_id: str | None = None
    technical_specs: dict = field(default_factory=dict)
    documents: list[CatalogItemDocument] = field(default_factory=list)
    hsn_code: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> CatalogItem:
        return cls(
            id=data["id"],
            item_name=_get(data, "item_name", ""),
            item_type=_get(data, "item_type", "Goods") or "Goods",
            category=data.get("category") or "Uncategorized",
            description=data.get("description", ""),
            manufacturer=data.get("manufacturer"),
            model=data.get("model"),
            sale_price=_num(_get(data, "sale_price")),
            cost=_num(data.get("cost")),
            uom=data.get("uom"),
            vendor_id=_get(data, "vendor_id"),
            assigned_person_id=_get(data, "assigned_person_id"),
            technical_specs=_get(data, "technical_specs") or {},
            documents=[CatalogItemDocument.from_dict(d) for d in data.get("documents") or []],
            hsn_code=_get(data, "hsn_code"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class VendorDocument:
    id: str
    name: str
    category: VendorDocumentCategory
    file_data: str
    mime_type: str
    uploaded_at: str
    uploaded_by: str

    @classmethod
    def from_dict(cls, data: dict) -> VendorDocument:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            category=VendorDocumentCategory(data.get("category", VendorDocumentCategory.OTHER.value)),
            file_data=_get(data, "file_data", ""),
            mime_type=_get(data, "mime_type", ""),
            uploaded_at=_get(data, "uploaded_at", ""),
            uploaded_by=_get(data, "uploaded_by", ""),
        )


@dataclass
class Vendor:
    id: str
    name: str
    vendor_type: VendorType = VendorType.GOODS_SUPPLIER
    address: str = ""
    city: str | None = None
    country: str | None = None
    email: str = ""
    phone: str = ""
    whatsapp: str | None = None
    website: str | None = None
    contact_person: str = ""
    assigned_team_member_id: str | None = None
    notes: str | None = None
    bank_name: str | None = None
    bank_account_number: str | None = None
    tax_id: str | None = None
    documents: list[VendorDocument] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Vendor:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            vendor_type=VendorType(_get(data, "vendor_type") or VendorType.GOODS_SUPPLIER.value),
            address=data.get("address", ""),
            city=data.get("city"),
            country=data.get("country"),
            email=data.get("email", ""),
            phone=data.get("phone", ""),
            whatsapp=data.get("whatsapp"),
            website=data.get("website"),
            contact_person=_get(data, "contact_person", ""),
            assigned_team_member_id=_get(data, "assigned_team_member_id"),
            notes=data.get("notes"),
            bank_name=_get(data, "bank_name"),
            bank_account_number=_get(data, "bank_account_number"),
            tax_id=_get(data, "tax_id"),
            documents=[VendorDocument.from_dict(d) for d in data.get("documents") or []],
        )

    def to_dict(self) -> dict:
        return asdict(self)


# ── People ──────────────────────────────────────────────────────────


@dataclass
class TeamMember:
    id: str
    name: str
    email: str = ""
    role: TeamMemberRole = TeamMemberRole.MEMBER

    @classmethod
    def from_dict(cls, data: dict) -> TeamMember:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            email=data.get("email", ""),
            role=TeamMemberRole(data.get("role", TeamMemberRole.MEMBER.value)),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Contact:
    id: str
    name: str
    role: str = ""
    email: str = ""
    phone: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Contact:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            role=data.get("role", ""),
            email=data.get("email", ""),
            phone=data.get("phone", ""),
        )


@dataclass
class Interaction:
    id: str
    type: InteractionType
    notes: str
    date: str
    author_id: str

    @classmethod
    def from_dict(cls, data: dict) -> Interaction:
        return cls(
            id=data["id"],
            type=InteractionType(data.get("type", InteractionType.NOTE.value)),
            notes=data.get("notes", ""),
            date=data.get("date", ""),
            author_id=_get(data, "author_id", ""),
        )


@dataclass
class ClientDocument:
    id: str
    name: str
    category: ClientDocumentCategory
    file_data: str
    mime_type: str
    uploaded_at: str
    uploaded_by: str

    @classmethod
    def from_dict(cls, data: dict) -> ClientDocument:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            category=ClientDocumentCategory(data.get("category", ClientDocumentCategory.OTHER.value)),
            file_data=_get(data, "file_data", ""),
            mime_type=_get(data, "mime_type", ""),
            uploaded_at=_get(data, "uploaded_at", ""),
            uploaded_by=_get(data, "uploaded_by", ""),
        )


@dataclass
class Client:
    id: str
    name: str
    address: str = ""
    email: str = ""
    phone: str = ""
    contact_person: str = ""
    contacts: list[Contact] = field(default_factory=list)
    interactions: list[Interaction] = field(default_factory=list)
    documents: list[ClientDocument] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Client:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            address=data.get("address", ""),
            email=data.get("email", ""),
            phone=data.get("phone", ""),
            contact_person=_get(data, "contact_person", ""),
            contacts=[Contact.from_dict(c) for c in data.get("contacts") or []],
            interactions=[Interaction.from_dict(i) for i in data.get("interactions") or []],
            documents=[ClientDocument.from_dict(d) for d in data.get("documents") or []],
        )

    def to_dict(self) -> dict:
        return asdict(self)


# ── Operations ──────────────────────────────────────────────────────


@dataclass
class ShipmentDocument:
    name: str
    data: str
    mime_type: str

    @classmethod
    def from_dict(cls, data: dict | None) -> ShipmentDocument | None:
        if not data:
            return None
        return cls(name=data.get("name", ""), data=data.get("data", ""), mime_type=_get(data, "mime_type", ""))


@dataclass
class Shipment:
    id: str
    tender_id: str | None
    vendor_id: str | None
    status: ShipmentStatus = ShipmentStatus.PENDING
    awb_number: str = ""
    tracking_link: str | None = None
    pickup_location: str = ""
    pickup_date: str = ""
    delivery_location: str = ""
    delivery_date: str = ""
    cost: float = 0.0
    awb_document: ShipmentDocument | None = None
    pod_document: ShipmentDocument | None = None
    grn_document: ShipmentDocument | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Shipment:
        return cls(
            id=data["id"],
            tender_id=_get(data, "tender_id"),
            vendor_id=_get(data, "vendor_id"),
            status=ShipmentStatus(data.get("status", ShipmentStatus.PENDING.value)),
            awb_number=_get(data, "awb_number", ""),
            tracking_link=_get(data, "tracking_link"),
            pickup_location=_get(data, "pickup_location", ""),
            pickup_date=_get(data, "pickup_date", ""),
            delivery_location=_get(data, "delivery_location", ""),
            delivery_date=_get(data, "delivery_date", ""),
            cost=_num(data.get("cost")),
            awb_document=ShipmentDocument.from_dict(_get(data, "awb_document")),
            pod_document=ShipmentDocument.from_dict(_get(data, "pod_document")),
            grn_document=ShipmentDocument.from_dict(_get(data, "grn_document")),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Task:
    id: str
    title: str
    tender_id: str | None = None
    description: str = ""
    assigned_to_id: str | None = None
    assigned_by_id: str | None = None
    due_date: str = ""
    status: TaskStatus = TaskStatus.TODO

    @classmethod
    def from_dict(cls, data: dict) -> Task:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            tender_id=_get(data, "tender_id"),
            description=data.get("description", ""),
            assigned_to_id=_get(data, "assigned_to_id"),
            assigned_by_id=_get(data, "assigned_by_id"),
            due_date=_get(data, "due_date", ""),
            status=TaskStatus(data.get("status", TaskStatus.TODO.value)),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TaskTemplateItem:
    id: str
    title: str
    description: str = ""
    due_days: int = 0  # relative to the tender's published date

    @classmethod
    def from_dict(cls, data: dict) -> TaskTemplateItem:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            due_days=int(_get(data, "due_days", 0) or 0),
        )


@dataclass
class TaskTemplate:
    id: str
    name: str
    tasks: list[TaskTemplateItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> TaskTemplate:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            tasks=[TaskTemplateItem.from_dict(t) for t in data.get("tasks") or []],
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Expense:
    id: str
    category: str
    description: str
    amount: float
    date: str
    tender_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Expense:
        return cls(
            id=data["id"],
            category=data.get("category", ""),
            description=data.get("description", ""),
            amount=_num(data.get("amount")),
            date=data.get("date", ""),
            tender_id=_get(data, "tender_id"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Notification:
    id: str
    type: NotificationType
    message: str
    created_at: str
    tender_id: str | None = None
    is_read: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> Notification:
        return cls(
            id=data["id"],
            type=NotificationType(data["type"]),
            message=data.get("message", ""),
            created_at=_get(data, "created_at", ""),
            tender_id=_get(data, "tender_id"),
            is_read=bool(_get(data, "is_read", False)),
        )

    def to_dict(self) -> dict:
        return asdict(self)


# ── Accounting ──────────────────────────────────────────────────────


@dataclass
class Account:
    id: str
    name: str
    type: AccountType

    @classmethod
    def from_dict(cls, data: dict) -> Account:
        return cls(id=data["id"], name=data.get("name", ""), type=AccountType(data["type"]))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class JournalEntryTransaction:
    account_id: str | None
    debit: float = 0.0
    credit: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> JournalEntryTransaction:
        return cls(
            account_id=_get(data, "account_id"),
            debit=_num(data.get("debit")),
            credit=_num(data.get("credit")),
        )


@dataclass
class JournalEntry:
    id: str
    date: str
    description: str
    transactions: list[JournalEntryTransaction] = field(default_factory=list)

    def is_balanced(self) -> bool:
        debits = sum(t.debit for t in self.transactions)
        credits = sum(t.credit for t in self.transactions)
        return round(debits - credits, 2) == 0

    @classmethod
    def from_dict(cls, data: dict) -> JournalEntry:
        return cls(
            id=data["id"],
            date=data.get("date", ""),
            description=data.get("description", ""),
            transactions=[JournalEntryTransaction.from_dict(t) for t in data.get("transactions") or []],
        )

    def to_dict(self) -> dict:
        return asdict(self)


# ── Settings ────────────────────────────────────────────────────────


@dataclass
class CompanyProfile:
    name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    reg_no: str = ""
    tin: str = ""
    ungm: str = ""
    logo: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> CompanyProfile:
        data = data or {}
        return cls(
            name=data.get("name", ""),
            address=data.get("address", ""),
            phone=data.get("phone", ""),
            email=data.get("email", ""),
            reg_no=_get(data, "reg_no", ""),
            tin=data.get("tin", ""),
            ungm=data.get("ungm", ""),
            logo=data.get("logo"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AIConfig:
    provider: AIProvider = AIProvider.GEMINI
    api_key: str = ""
    model: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> AIConfig:
        data = data or {}
        return cls(
            provider=AIProvider(data.get("provider", AIProvider.GEMINI.value)),
            api_key=_get(data, "api_key", ""),
            model=data.get("model"),
        )

    def to_dict(self) -> dict:
        return {"provider": self.provider.value, "api_key": self.api_key, "model": self.model}


@dataclass
class DocumentSettings:
    """Appearance of generated PDFs."""

    accent_color: str = "#0d9488"
    font_family: str = "Inter"
    font_size: int = 10
    show_logo: bool = True
    logo_size: str = "medium"
    page_margin: str = "medium"
    document_title_quote: str = "QUOTATION"
    document_title_proforma: str = "PROFORMA INVOICE"
    document_title_invoice: str = "COMMERCIAL INVOICE"
    document_title_delivery_note: str = "DELIVERY NOTE"
    document_title_po: str = "PURCHASE ORDER"
    notes_label: str = "Notes"
    terms_label: str = "Terms & Conditions"
    template_style: str = "Classic"
    logo_position: str = "left"
    table_theme: str = "striped"
    secondary_color: str = "#f3f4f6"
    text_color: str = "#111827"
    footer_text: str = "Thank you for your business!"
    show_page_numbers: bool = True

    @classmethod
    def from_dict(cls, data: dict | None) -> DocumentSettings:
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
class MailSettings:
    url: str = ""

    @classmethod
    def from_dict(cls, data: dict | None) -> MailSettings:
        return cls(url=(data or {}).get("url", ""))

    def to_dict(self) -> dict:
        return asdict(self)
