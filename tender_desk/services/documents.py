"""Commercial documents for a watched tender.

``build_document_model`` resolves everything a document needs (company,
client, vendor, formatted lines and totals) so a renderer never looks
anything up. ``generate_document`` hands that model to a
``DocumentRenderer`` and returns the bytes base64-encoded, ready to be
stored as a ``ManagedDocument``.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Protocol

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.image.exceptions import UnrecognizedImageError
from docx.shared import Mm, Pt, RGBColor

from ..exceptions import DocumentGenerationError
from ..models.records import Client, CompanyProfile, DocumentSettings, Vendor
from ..models.types import DocumentCategory, PurchaseOrder, QuoteItem, WatchlistItem

logger = logging.getLogger(__name__)


class DocumentType(str, Enum):
    QUOTE = "Quotation"
    PROFORMA_INVOICE = "Proforma Invoice"
    COMMERCIAL_INVOICE = "Commercial Invoice"
    DELIVERY_NOTE = "Delivery Note"
    PURCHASE_ORDER = "Purchase Order"
    TECHNICAL_OFFER = "Technical Offer"


# Keys of QuoteItem.technical_details, in print order.
TECH_SPEC_FIELDS = [
    ("manufacturerName", "I. Manufacturer Name"),
    ("modelNo", "II. Model No."),
    ("countryOfOrigin", "III. Country of Origin"),
    ("descriptionOfFunction", "1. Description of Function"),
    ("operationalRequirements", "2. Operational Requirements"),
    ("systemConfiguration", "3. System Configuration"),
    ("technicalSpecifications", "4. Technical Specifications"),
    ("accessoriesSparesConsumables", "5. Accessories, Spares, and Consumables"),
    ("operatingEnvironment", "6. Operating Environment"),
    ("standardsSafetyRequirements", "7. Standards and Safety Requirements"),
    ("userTraining", "8. User Training"),
    ("warranty", "9. Warranty"),
    ("maintenanceService", "10. Maintenance Service During Warranty Period"),
    ("installationCommissioning", "11. Installation and Commissioning"),
    ("documentation", "12. Documentation"),
]

SERVICE_SPEC_FIELDS = [
    ("scopeOfWork", "1. Scope of Work"),
    ("keyDeliverables", "2. Key Deliverables"),
    ("timeline", "3. Proposed Timeline"),
    ("personnel", "4. Key Personnel"),
    ("reporting", "5. Reporting Requirements"),
    ("qualityAssurance", "6. Quality Assurance Plan"),
]

# Where a generated document is filed in the tender's document list.
DOCUMENT_CATEGORIES = {
    DocumentType.PURCHASE_ORDER: DocumentCategory.PURCHASE_ORDER,
}

LOGO_SIZES_MM = {"small": 20, "medium": 25, "large": 30}
PAGE_MARGINS_MM = {"small": 10, "medium": 15, "large": 20}
FONT_MAP = {
    "Inter": "Helvetica",
    "Roboto": "Helvetica",
    "Times New Roman": "Times New Roman",
    "Courier New": "Courier New",
}


def format_currency(amount: float) -> str:
    return f"${amount:,.2f}"


def contrasting_text_color(hex_color: str) -> str:
    """Black or white, whichever reads better on ``hex_color`` (YIQ brightness)."""
    value = (hex_color or "").lstrip("#")
    if len(value) != 6:
        return "#000000"
    try:
        r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return "#000000"
    yiq = (r * 299 + g * 587 + b * 114) / 1000
    return "#000000" if yiq >= 128 else "#FFFFFF"


# ── Model ───────────────────────────────────────────────────────────


@dataclass
class DocumentParty:
    label: str
    name: str
    address: str = ""


@dataclass
class DocumentTotal:
    label: str
    value: float

    @property
    def formatted(self) -> str:
        return format_currency(self.value)


@dataclass
class TechnicalSection:
    heading: str
    specs: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class DocumentModel:
    """Everything needed to lay out one document, already resolved."""

    type: DocumentType
    title: str
    base_name: str
    company: CompanyProfile
    settings: DocumentSettings
    meta: list[tuple[str, str]]
    columns: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)
    totals: list[DocumentTotal] = field(default_factory=list)
    party: DocumentParty | None = None
    technical_sections: list[TechnicalSection] = field(default_factory=list)
    terms: str = ""

    @property
    def header_text_color(self) -> str:
        return contrasting_text_color(self.settings.accent_color)


def _quote_rows(items: list[QuoteItem]) -> list[list[str]]:
    rows = []
    for i, item in enumerate(items, 1):
        text = f"{item.item_name}\n{item.description}" if item.description else item.item_name
        rows.append([
            str(i), text, f"{item.quantity:g}", format_currency(item.unit_price), format_currency(item.line_total),
        ])
    return rows


def _technical_sections(item: WatchlistItem) -> list[TechnicalSection]:
    sections = []
    for i, quote in enumerate(item.quote_items, 1):
        spec_fields = SERVICE_SPEC_FIELDS if quote.item_type == "Services" else TECH_SPEC_FIELDS
        specs = [
            (label, str(quote.technical_details[key]))
            for key, label in spec_fields
            if quote.technical_details.get(key)
        ]
        sections.append(TechnicalSection(heading=f"Item {i}: {quote.item_name}", specs=specs))
    return sections


def build_document_model(
    doc_type: DocumentType,
    item: WatchlistItem,
    company: CompanyProfile,
    clients: list[Client],
    settings: DocumentSettings,
    po: PurchaseOrder | None = None,
    vendors: list[Vendor] | None = None,
    today: date | None = None,
) -> DocumentModel:
    """Resolve a document for ``item``.

    Raises:
        DocumentGenerationError: a commercial invoice was asked for a tender
            without invoices, or a purchase order without ``po``.
    """
    doc_type = DocumentType(doc_type)
    fin = item.financial_details
    short_title = item.tender.title[:15]
    issued = (today or date.today()).isoformat()

    client = next((c for c in clients if c.id == fin.client_id), None)
    party = DocumentParty("Bill To:", client.name, client.address) if client else None

    meta_label, meta_id = "Quote #", fin.quote_number
    columns: list[str] = []
    rows: list[list[str]] = []
    totals: list[DocumentTotal] = []
    sections: list[TechnicalSection] = []

    if doc_type in (DocumentType.QUOTE, DocumentType.PROFORMA_INVOICE):
        title = settings.document_title_quote if doc_type == DocumentType.QUOTE else settings.document_title_proforma
        base_name = f"{title.replace(' ', '-')}-{short_title}"
        columns = ["#", "Item Description", "Qty", "Unit Price", "Total"]
        rows = _quote_rows(item.quote_items)
        subtotal = item.quote_subtotal()
        delivery = fin.delivery_cost or 0.0
        vat_pct = fin.vat_percentage or 0
        vat = subtotal * vat_pct / 100
        totals = [
            DocumentTotal("Subtotal", subtotal),
            DocumentTotal("Delivery", delivery),
            DocumentTotal(f"VAT ({vat_pct:g}%)", vat),
            DocumentTotal("Total", subtotal + delivery + vat),
        ]
    elif doc_type == DocumentType.COMMERCIAL_INVOICE:
        if not item.invoices:
            raise DocumentGenerationError("No invoice available to generate.")
        invoice = item.invoices[0]
        title = settings.document_title_invoice
        base_name = f"Invoice-{invoice.invoice_number}"
        columns = ["Description", "Amount"]
        rows = [[invoice.description, format_currency(invoice.amount)]]
        totals = [DocumentTotal("Total Due", invoice.amount)]
    elif doc_type == DocumentType.PURCHASE_ORDER:
        if po is None:
            raise DocumentGenerationError("Purchase Order data not provided.")
        title = settings.document_title_po
        base_name = f"PO-{po.po_number}"
        meta_label, meta_id = "PO #", po.po_number
        columns = ["#", "Item Description", "Qty", "Unit Price", "Total"]
        rows = [
            [str(i), line.description, f"{line.quantity:g}",
             format_currency(line.unit_price), format_currency(line.quantity * line.unit_price)]
            for i, line in enumerate(po.items, 1)
        ]
        totals = [DocumentTotal("Total", po.total)]
        vendor = next((v for v in vendors or [] if v.id == po.vendor_id), None)
        if vendor:
            party = DocumentParty("Vendor:", vendor.name, vendor.address)
    elif doc_type == DocumentType.DELIVERY_NOTE:
        title = settings.document_title_delivery_note
        base_name = f"Delivery-Note-{short_title}"
        columns = ["#", "Item Description", "Quantity Shipped"]
        rows = [[str(i), q.item_name, f"{q.quantity:g}"] for i, q in enumerate(item.quote_items, 1)]
    else:
        title = "Technical Offer"
        base_name = f"Technical-Offer-{short_title}"
        sections = _technical_sections(item)

    return DocumentModel(
        type=doc_type,
        title=title,
        base_name=base_name,
        company=company,
        settings=settings,
        meta=[(meta_label, meta_id or "N/A"), ("Date", issued), ("Project Ref", item.tender.title)],
        columns=columns,
        rows=rows,
        totals=totals,
        party=party,
        technical_sections=sections,
        terms=fin.terms_and_conditions or "",
    )


# ── Rendering ───────────────────────────────────────────────────────


class DocumentRenderer(Protocol):
    mime_type: str
    extension: str

    def render(self, model: DocumentModel) -> bytes: ...


def _rgb(hex_color: str) -> RGBColor | None:
    value = (hex_color or "").lstrip("#")
    if len(value) != 6:
        return None
    try:
        return RGBColor.from_string(value.upper())
    except ValueError:
        return None


def _decode_data_uri(data: str) -> bytes:
    payload = data.split(",", 1)[1] if data.startswith("data:") else data
    return base64.b64decode(payload)


class DocxRenderer:
    """Lays a ``DocumentModel`` out as a Word document."""

    mime_type = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    extension = "docx"

    def render(self, model: DocumentModel) -> bytes:
        settings = model.settings
        doc = Document()

        normal = doc.styles["Normal"].font
        normal.name = FONT_MAP.get(settings.font_family, "Helvetica")
        normal.size = Pt(settings.font_size)

        margin = Mm(PAGE_MARGINS_MM.get(settings.page_margin, 15))
        section = doc.sections[0]
        section.left_margin = section.right_margin = margin
        section.top_margin = section.bottom_margin = margin

        self._header(doc, model)
        self._party_and_meta(doc, model)

        if model.type == DocumentType.TECHNICAL_OFFER:
            for tech in model.technical_sections:
                self._heading(doc, tech.heading, settings.font_size + 2, settings.accent_color)
                self._table(doc, [], [[label, value] for label, value in tech.specs])
        else:
            self._table(doc, model.columns, model.rows)

        if model.totals:
            rows = [[t.label, t.formatted] for t in model.totals]
            table = self._table(doc, [], rows)
            for cell in table.rows[-1].cells:
                for run in cell.paragraphs[0].runs:
                    run.bold = True

        if model.terms:
            doc.add_paragraph().add_run(settings.terms_label).bold = True
            terms = doc.add_paragraph(model.terms)
            for run in terms.runs:
                run.font.size = Pt(max(settings.font_size - 2, 6))

        footer = section.footer.paragraphs[0]
        footer.text = "  ".join(p for p in (model.company.name, settings.footer_text) if p)

        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()

    def _header(self, doc, model: DocumentModel) -> None:
        settings = model.settings
        if settings.show_logo and model.company.logo:
            try:
                doc.add_picture(
                    io.BytesIO(_decode_data_uri(model.company.logo)),
                    width=Mm(LOGO_SIZES_MM.get(settings.logo_size, 25)),
                )
            except (binascii.Error, ValueError, UnrecognizedImageError) as e:
                logger.warning("Skipping company logo: %s", e)
        title = self._heading(doc, model.title, 16, settings.accent_color)
        title.alignment = WD_ALIGN_PARAGRAPH.RIGHT

    def _heading(self, doc, text: str, size: int, color: str):
        paragraph = doc.add_paragraph()
        run = paragraph.add_run(text)
        run.bold = True
        run.font.size = Pt(size)
        rgb = _rgb(color)
        if rgb is not None:
            run.font.color.rgb = rgb
        return paragraph

    def _party_and_meta(self, doc, model: DocumentModel) -> None:
        if model.party:
            paragraph = doc.add_paragraph()
            paragraph.add_run(model.party.label).bold = True
            paragraph.add_run(f"\n{model.party.name}\n{model.party.address}")
        self._table(doc, [], [[k, v] for k, v in model.meta])

    def _table(self, doc, columns: list[str], rows: list[list[str]]):
        width = len(columns) or max((len(r) for r in rows), default=1)
        table = doc.add_table(rows=0, cols=width)
        table.style = "Table Grid"
        if columns:
            cells = table.add_row().cells
            for cell, text in zip(cells, columns):
                cell.text = text
                for run in cell.paragraphs[0].runs:
                    run.bold = True
        for row in rows:
            for cell, text in zip(table.add_row().cells, row):
                cell.text = text
        return table


@dataclass
class RenderedDocument:
    name: str
    mime_type: str
    base64_data: str
    category: DocumentCategory = DocumentCategory.GENERATED

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_data}"


def generate_document(
    doc_type: DocumentType,
    item: WatchlistItem,
    company: CompanyProfile,
    clients: list[Client],
    settings: DocumentSettings,
    po: PurchaseOrder | None = None,
    vendors: list[Vendor] | None = None,
    renderer: DocumentRenderer | None = None,
    today: date | None = None,
) -> RenderedDocument:
    model = build_document_model(doc_type, item, company, clients, settings, po, vendors, today)
    renderer = renderer or DocxRenderer()
    content = renderer.render(model)
    name = f"{model.base_name}.{renderer.extension}"
    logger.info("Generated %s for tender %s (%d bytes)", name, item.tender.id, len(content))
    return RenderedDocument(
        name=name,
        mime_type=renderer.mime_type,
        base64_data=base64.b64encode(content).decode("ascii"),
        category=DOCUMENT_CATEGORIES.get(model.type, DocumentCategory.GENERATED),
    )
