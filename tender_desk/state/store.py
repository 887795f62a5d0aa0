"""In-process domain store for the tender workspace.

``TenderStore`` owns one immutable ``StoreState`` snapshot. Every action
builds a new snapshot with ``dataclasses.replace`` (collections are new
lists; untouched records are shared) and then notifies subscribers with the
names of the collections that changed. Persistence is just one subscriber,
see ``state.persistence``.

Watchlist actions go through ``_update_item`` so that each visible change
prepends exactly one ``ActivityLog`` entry in the same commit as the change
itself. References between records are soft: removing a parent clears the
matching id fields on its dependants (see the ``remove_*`` methods).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from dateutil import parser as dtparser

from ..config import INVOICE_DUE_DAYS
from ..models.records import (
    Account,
    AIConfig,
    CatalogItem,
    Client,
    ClientDocument,
    ClientDocumentCategory,
    CompanyProfile,
    Contact,
    DocumentSettings,
    Expense,
    Interaction,
    JournalEntry,
    MailSettings,
    Notification,
    NotificationType,
    Shipment,
    Task,
    TaskStatus,
    TaskTemplate,
    TeamMember,
    Vendor,
    VendorDocument,
    VendorDocumentCategory,
)
from ..models.types import (
    ActivityType,
    Comment,
    DocumentAnalysis,
    DocumentCategory,
    DocumentStatus,
    Invoice,
    InvoiceStatus,
    ManagedDocument,
    PurchaseOrder,
    QuoteItem,
    RiskAssessment,
    Source,
    Tender,
    TenderStatus,
    WatchlistItem,
)
from .activity import Description, ItemTransform, create_activity_log, utc_now_iso, with_activity_log

if TYPE_CHECKING:
    from ..ai.service import GenerateFn
    from ..services.documents import RenderedDocument

logger = logging.getLogger(__name__)

Listener = Callable[["StoreState", frozenset], None]

MANUAL_SOURCE = "Manual Entry"


def _new_id() -> str:
    return str(uuid.uuid4())


def _with_id(record):
    return record if record.id else replace(record, id=_new_id())


@dataclass(frozen=True)
class StoreState:
    """One immutable snapshot of every persisted collection."""

    sources: list[Source] = field(default_factory=list)
    watchlist: list[WatchlistItem] = field(default_factory=list)
    catalog: list[CatalogItem] = field(default_factory=list)
    vendors: list[Vendor] = field(default_factory=list)
    team_members: list[TeamMember] = field(default_factory=list)
    clients: list[Client] = field(default_factory=list)
    shipments: list[Shipment] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    task_templates: list[TaskTemplate] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)
    journal_entries: list[JournalEntry] = field(default_factory=list)
    chart_of_accounts: list[Account] = field(default_factory=list)
    company_profile: CompanyProfile = field(default_factory=CompanyProfile)
    ai_config: AIConfig = field(default_factory=AIConfig)
    document_settings: DocumentSettings = field(default_factory=DocumentSettings)
    mail_settings: MailSettings = field(default_factory=MailSettings)
    current_user_id: Optional[str] = None
    po_counter: int = 0


STATE_KEYS: tuple[str, ...] = tuple(StoreState.__dataclass_fields__)


class TenderStore:
    """Explicit state container with one method per domain action."""

    def __init__(
        self,
        state: StoreState | None = None,
        *,
        generate: GenerateFn | None = None,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self._state = state or StoreState()
        self._listeners: list[Listener] = []
        self._generate = generate
        self._clock = clock

    @property
    def state(self) -> StoreState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(state, changed_keys)``; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, **changes) -> None:
        if not changes:
            return
        self._state = replace(self._state, **changes)
        keys = frozenset(changes)
        for listener in list(self._listeners):
            listener(self._state, keys)

    # ── Lookups ─────────────────────────────────────────────────────

    def get_watchlist_item(self, tender_id: str) -> WatchlistItem | None:
        return next((i for i in self._state.watchlist if i.tender.id == tender_id), None)

    def get_team_member(self, member_id: str | None) -> TeamMember | None:
        if not member_id:
            return None
        return next((m for m in self._state.team_members if m.id == member_id), None)

    @property
    def current_user(self) -> TeamMember | None:
        return self.get_team_member(self._state.current_user_id)

    def _find(self, key: str, record_id: str):
        return next((r for r in getattr(self._state, key) if r.id == record_id), None)

    # ── Generic collection helpers ──────────────────────────────────

    def _add(self, key: str, record, **extra):
        record = _with_id(record)
        self._commit(**{key: [*getattr(self._state, key), record]}, **extra)
        return record

    def _update(self, key: str, record_id: str, **changes):
        items = getattr(self._state, key)
        for index, record in enumerate(items):
            if record.id == record_id:
                updated = replace(record, **changes)
                self._commit(**{key: [*items[:index], updated, *items[index + 1:]]})
                return updated
        return None

    def _remove(self, key: str, record_id: str, **extra) -> bool:
        items = getattr(self._state, key)
        kept = [r for r in items if r.id != record_id]
        if len(kept) == len(items):
            return False
        self._commit(**{key: kept}, **extra)
        return True

    def _update_item(
        self,
        tender_id: str,
        type: ActivityType,
        description: Description,
        transform: ItemTransform,
        **extra,
    ) -> WatchlistItem | None:
        """Log-and-transform one watchlist item in a single commit.

        Other items keep their identity. ``extra`` collections are committed
        together with the watchlist.
        """
        watchlist = self._state.watchlist
        for index, item in enumerate(watchlist):
            if item.tender.id == tender_id:
                updated = with_activity_log(item, type, description, transform, self._clock())
                self._commit(watchlist=[*watchlist[:index], updated, *watchlist[index + 1:]], **extra)
                return updated
        logger.debug("No watchlist item for tender %s", tender_id)
        return None

    # ── Sources ─────────────────────────────────────────────────────
    # A change to ``sources`` tells subscribers to re-fetch every feed.

    def add_source(self, url: str) -> Source | None:
        url = url.strip()
        if not url or any(s.url == url for s in self._state.sources):
            return None
        return self._add("sources", Source(id=_new_id(), url=url))

    def add_multiple_sources(self, urls: Iterable[str]) -> list[Source]:
        known = {s.url for s in self._state.sources}
        new_sources: list[Source] = []
        for url in urls:
            url = url.strip()
            if url and url not in known:
                known.add(url)
                new_sources.append(Source(id=_new_id(), url=url))
        if new_sources:
            self._commit(sources=[*self._state.sources, *new_sources])
        return new_sources

    def update_source(self, source_id: str, url: str) -> Source | None:
        return self._update("sources", source_id, url=url.strip())

    def remove_source(self, source_id: str) -> bool:
        return self._remove("sources", source_id)

    # ── Watchlist ───────────────────────────────────────────────────

    def add_to_watchlist(self, tender: Tender, assigned_team_member_id: str | None = None) -> WatchlistItem | None:
        """Start tracking ``tender``. Adding the same tender twice is ignored."""
        if self.get_watchlist_item(tender.id) is not None:
            return None

        now = self._clock()
        logs = [create_activity_log(ActivityType.TENDER_ADDED, f'Tender "{tender.title}" added.', tender, now)]
        member = self.get_team_member(assigned_team_member_id)
        if member is not None:
            logs.insert(0, create_activity_log(ActivityType.TENDER_ASSIGNED, f"Assigned to {member.name}.", tender, now))

        item = WatchlistItem(
            tender=tender,
            added_at=now,
            assigned_team_member_id=assigned_team_member_id or None,
            activity_log=logs,
        )
        self._commit(watchlist=[*self._state.watchlist, item])
        logger.info("Added tender %s to watchlist", tender.id)
        return item

    def add_manual_tender(
        self,
        title: str,
        summary: str,
        closing_date: str,
        link: str = "",
        assigned_team_member_id: str | None = None,
    ) -> WatchlistItem | None:
        tender = Tender(
            id=_new_id(),
            title=title,
            summary=summary,
            published_date=self._clock(),
            closing_date=closing_date,
            is_closing_date_estimated=False,
            link=link,
            source=MANUAL_SOURCE,
        )
        return self.add_to_watchlist(tender, assigned_team_member_id)

    def remove_from_watchlist(self, tender_id: str) -> bool:
        """Remove the item; tasks, expenses, shipments and notifications survive unlinked."""
        state = self._state
        kept = [i for i in state.watchlist if i.tender.id != tender_id]
        if len(kept) == len(state.watchlist):
            return False

        def unlink(records):
            return [replace(r, tender_id=None) if r.tender_id == tender_id else r for r in records]

        self._commit(
            watchlist=kept,
            tasks=unlink(state.tasks),
            expenses=unlink(state.expenses),
            shipments=unlink(state.shipments),
            notifications=unlink(state.notifications),
        )
        return True

    def update_watchlist_status(self, tender_id: str, status: TenderStatus) -> WatchlistItem | None:
        status = TenderStatus(status)
        return self._update_item(
            tender_id, ActivityType.STATUS_CHANGE, f"Status changed to {status.value}.",
            lambda item: replace(item, status=status),
        )

    def update_tender_closing_date(self, tender_id: str, closing_date: str) -> WatchlistItem | None:
        """Correct the snapshot's closing date. Not logged."""
        watchlist = self._state.watchlist
        for index, item in enumerate(watchlist):
            if item.tender.id == tender_id:
                iso = dtparser.parse(closing_date).isoformat()
                tender = replace(item.tender, closing_date=iso, is_closing_date_estimated=False)
                updated = replace(item, tender=tender)
                self._commit(watchlist=[*watchlist[:index], updated, *watchlist[index + 1:]])
                return updated
        return None

    def update_tender_category(self, tender_id: str, category: str) -> WatchlistItem | None:
        return self._update_item(
            tender_id, ActivityType.STATUS_CHANGE, f"Category changed to {category}.",
            lambda item: replace(item, category=category),
        )

    def update_notes(self, tender_id: str, notes: str) -> WatchlistItem | None:
        return self._update_item(
            tender_id, ActivityType.NOTE_UPDATED, "Notes were updated.",
            lambda item: replace(item, notes=notes),
        )

    def assign_tender_to_member(
        self, tender_id: str, member_id: str | None, assigner_name: str
    ) -> WatchlistItem | None:
        member = self.get_team_member(member_id)
        description = f"Assigned to {member.name} by {assigner_name}." if member else "Unassigned."
        return self._update_item(
            tender_id, ActivityType.TENDER_ASSIGNED, description,
            lambda item: replace(item, assigned_team_member_id=member_id or None),
        )

    def assign_tender_to_client(self, tender_id: str, client_id: str | None) -> WatchlistItem | None:
        return self._update_item(
            tender_id, ActivityType.FINANCIALS_UPDATED, "Client updated.",
            lambda item: replace(item, financial_details=replace(item.financial_details, client_id=client_id)),
        )

    def update_financial_details(self, tender_id: str, **details) -> WatchlistItem | None:
        """Merge ``details`` into the item's ``FinancialDetails``."""
        activity = ActivityType.FINANCIALS_UPDATED
        description = "Financial details updated."
        if set(details) == {"payment_method"}:
            activity = ActivityType.PAYMENT_METHOD_UPDATED
            description = f"Payment method set to {details['payment_method']}."
        return self._update_item(
            tender_id, activity, description,
            lambda item: replace(item, financial_details=replace(item.financial_details, **details)),
        )

    # ── Quote items ─────────────────────────────────────────────────

    def _attach_catalog(
        self, items: list[QuoteItem], catalog: list[CatalogItem]
    ) -> tuple[list[QuoteItem], list[CatalogItem]]:
        """Link ad-hoc quote lines to the catalog, creating entries on first sight.

        Names match case-insensitively. Returns the linked items and the
        (possibly grown) catalog.
        """
        by_name = {c.item_name.strip().casefold(): c for c in catalog}
        linked: list[QuoteItem] = []
        grown = list(catalog)
        for item in items:
            name = item.item_name.strip()
            if not name or item.catalog_item_ref:
                linked.append(item)
                continue
            entry = by_name.get(name.casefold())
            if entry is None:
                entry = CatalogItem(
                    id=_new_id(),
                    item_name=name,
                    item_type=item.item_type,
                    description=item.description,
                    manufacturer=item.manufacturer,
                    model=item.model,
                    sale_price=item.unit_price,
                    cost=item.cost or 0.0,
                    uom=item.uom,
                    technical_specs=dict(item.technical_details),
                    hsn_code=item.hsn_code,
                )
                by_name[name.casefold()] = entry
                grown.append(entry)
                logger.info("Created catalog item %r from quote line", name)
            linked.append(replace(item, catalog_item_ref=entry.id))
        return linked, grown

    def _add_quote_items(self, tender_id: str, items: list[QuoteItem], description: str) -> WatchlistItem | None:
        if self.get_watchlist_item(tender_id) is None:
            return None
        fresh = [replace(q, id=_new_id()) for q in items]
        linked, catalog = self._attach_catalog(fresh, self._state.catalog)
        extra = {"catalog": catalog} if len(catalog) != len(self._state.catalog) else {}
        return self._update_item(
            tender_id, ActivityType.QUOTE_ITEM_ADDED, description,
            lambda item: replace(item, quote_items=[*item.quote_items, *linked]),
            **extra,
        )

    def add_quote_item(self, tender_id: str, quote_item: QuoteItem) -> WatchlistItem | None:
        return self._add_quote_items(tender_id, [quote_item], f"Added item: {quote_item.item_name}")

    def add_multiple_quote_items(self, tender_id: str, quote_items: list[QuoteItem]) -> WatchlistItem | None:
        return self._add_quote_items(tender_id, list(quote_items), f"Added {len(quote_items)} items from catalog.")

    def update_quote_item(self, tender_id: str, item_id: str, updated: QuoteItem) -> WatchlistItem | None:
        updated = replace(updated, id=item_id)
        return self._update_item(
            tender_id, ActivityType.QUOTE_ITEM_UPDATED, f"Updated item: {updated.item_name}",
            lambda item: replace(item, quote_items=[updated if q.id == item_id else q for q in item.quote_items]),
        )

    def remove_quote_item(self, tender_id: str, item_id: str) -> WatchlistItem | None:
        def describe(item: WatchlistItem) -> str:
            target = next((q for q in item.quote_items if q.id == item_id), None)
            return f"Removed item: {target.item_name if target else 'N/A'}"

        return self._update_item(
            tender_id, ActivityType.QUOTE_ITEM_REMOVED, describe,
            lambda item: replace(item, quote_items=[q for q in item.quote_items if q.id != item_id]),
        )

    # ── Documents & comments ────────────────────────────────────────

    def add_document(
        self,
        tender_id: str,
        name: str,
        data: str,
        mime_type: str,
        category: DocumentCategory,
        uploaded_by: str,
        is_generated: bool = False,
    ) -> WatchlistItem | None:
        document = ManagedDocument(
            id=_new_id(),
            name=name,
            file_name=name,
            file_data=data,
            mime_type=mime_type,
            status=DocumentStatus.COMPLETED,
            category=DocumentCategory(category),
            uploaded_by=uploaded_by,
            uploaded_at=self._clock(),
            is_generated=is_generated,
        )
        return self._update_item(
            tender_id, ActivityType.DOCUMENT_UPLOADED, f"Uploaded document: {name}",
            lambda item: replace(item, documents=[*item.documents, document]),
        )

    def add_generated_document(self, tender_id: str, document: RenderedDocument) -> WatchlistItem | None:
        """File a document produced by ``services.documents.generate_document``."""
        return self.add_document(
            tender_id, document.name, document.base64_data, document.mime_type,
            document.category, "System", is_generated=True,
        )

    def remove_document(self, tender_id: str, document_id: str, remover_name: str) -> WatchlistItem | None:
        def describe(item: WatchlistItem) -> str:
            doc = next((d for d in item.documents if d.id == document_id), None)
            return f"Removed document: {(doc.file_name if doc else None) or 'N/A'} by {remover_name}"

        return self._update_item(
            tender_id, ActivityType.DOCUMENT_REMOVED, describe,
            lambda item: replace(item, documents=[d for d in item.documents if d.id != document_id]),
        )

    def add_comment(
        self, tender_id: str, author_id: str, text: str, mentions: list[str] | None = None
    ) -> WatchlistItem | None:
        """Add a comment; every mentioned member other than the author gets a notification."""
        item = self.get_watchlist_item(tender_id)
        if item is None:
            return None

        now = self._clock()
        mentions = list(mentions or [])
        comment = Comment(id=_new_id(), author_id=author_id, text=text, created_at=now, mentions=mentions)

        author = self.get_team_member(author_id)
        author_name = author.name if author else "Someone"
        notices = [
            Notification(
                id=_new_id(),
                type=NotificationType.USER_MENTIONED,
                message=f"{author_name} mentioned you in {item.tender.title}.",
                created_at=now,
                tender_id=tender_id,
            )
            for member_id in mentions
            if member_id != author_id
        ]
        extra = {"notifications": [*self._state.notifications, *notices]} if notices else {}
        return self._update_item(
            tender_id, ActivityType.COMMENT_ADDED, "Added a new comment.",
            lambda i: replace(i, comments=[*i.comments, comment]),
            **extra,
        )

    # ── Invoices ────────────────────────────────────────────────────

    def add_invoice(self, tender_id: str, invoice: Invoice) -> WatchlistItem | None:
        invoice = _with_id(invoice)
        return self._update_item(
            tender_id, ActivityType.INVOICE_CREATED, f"Created invoice: {invoice.invoice_number}",
            lambda item: replace(item, invoices=[*item.invoices, invoice]),
        )

    def update_invoice(self, tender_id: str, invoice_id: str, updated: Invoice) -> WatchlistItem | None:
        updated = replace(updated, id=invoice_id)
        return self._update_item(
            tender_id, ActivityType.INVOICE_UPDATED, f"Updated invoice: {updated.invoice_number}",
            lambda item: replace(item, invoices=[updated if i.id == invoice_id else i for i in item.invoices]),
        )

    def remove_invoice(self, tender_id: str, invoice_id: str) -> WatchlistItem | None:
        def describe(item: WatchlistItem) -> str:
            target = next((i for i in item.invoices if i.id == invoice_id), None)
            return f"Removed invoice: {target.invoice_number if target else 'N/A'}"

        return self._update_item(
            tender_id, ActivityType.INVOICE_REMOVED, describe,
            lambda item: replace(item, invoices=[i for i in item.invoices if i.id != invoice_id]),
        )

    def create_invoice_from_quote(self, tender_id: str, today: date | None = None) -> Invoice | None:
        """Draft an invoice for the full quote value, due in 30 days.

        Returns ``None`` when the tender is unknown or the quote totals zero.
        """
        item = self.get_watchlist_item(tender_id)
        if item is None:
            return None
        total = item.tender_value()
        if total <= 0:
            logger.warning("Cannot create invoice from quote with zero value for tender %s", tender_id)
            return None

        today = today or date.today()
        invoice = Invoice(
            id=_new_id(),
            invoice_number=f"INV-{item.tender.id[-4:]}-{len(item.invoices) + 1}",
            issue_date=today.isoformat(),
            due_date=(today + timedelta(days=INVOICE_DUE_DAYS)).isoformat(),
            description=f"Invoice for: {item.tender.title}",
            amount=total,
            status=InvoiceStatus.DRAFT,
        )
        self.add_invoice(tender_id, invoice)
        return invoice

    # ── Purchase orders ─────────────────────────────────────────────

    def add_purchase_order(self, tender_id: str, po: PurchaseOrder) -> WatchlistItem | None:
        """Attach a PO; a blank ``po_number`` takes the next number from the counter."""
        if self.get_watchlist_item(tender_id) is None:
            return None
        extra = {}
        if not po.po_number:
            counter = self._state.po_counter + 1
            po = replace(po, po_number=f"PO-{counter:05d}")
            extra["po_counter"] = counter
        po = _with_id(po)
        return self._update_item(
            tender_id, ActivityType.PO_CREATED, f"Created Purchase Order: {po.po_number}",
            lambda item: replace(item, purchase_orders=[*item.purchase_orders, po]),
            **extra,
        )

    def update_purchase_order(self, tender_id: str, po: PurchaseOrder) -> WatchlistItem | None:
        return self._update_item(
            tender_id, ActivityType.FINANCIALS_UPDATED, f"Updated Purchase Order: {po.po_number}",
            lambda item: replace(
                item, purchase_orders=[po if p.id == po.id else p for p in item.purchase_orders]
            ),
        )

    def remove_purchase_order(self, tender_id: str, po_id: str) -> WatchlistItem | None:
        def describe(item: WatchlistItem) -> str:
            target = next((p for p in item.purchase_orders if p.id == po_id), None)
            return f"Removed Purchase Order: {target.po_number if target else 'N/A'}"

        return self._update_item(
            tender_id, ActivityType.FINANCIALS_UPDATED, describe,
            lambda item: replace(item, purchase_orders=[p for p in item.purchase_orders if p.id != po_id]),
        )

    # ── Task templates ──────────────────────────────────────────────

    def apply_task_template(
        self,
        tender_id: str,
        template_id: str,
        assigned_to_id: str | None,
        assigned_by_id: str | None,
    ) -> list[Task]:
        """Create one task per template line, due ``published + due_days``."""
        template = self._find("task_templates", template_id)
        item = self.get_watchlist_item(tender_id)
        if template is None or item is None or not template.tasks:
            return []

        start = dtparser.isoparse(item.tender.published_date).date()
        new_tasks = [
            Task(
                id=_new_id(),
                title=line.title,
                description=line.description,
                tender_id=tender_id,
                assigned_to_id=assigned_to_id,
                assigned_by_id=assigned_by_id,
                due_date=(start + timedelta(days=line.due_days)).isoformat(),
                status=TaskStatus.TODO,
            )
            for line in template.tasks
        ]
        self._update_item(
            tender_id, ActivityType.TEMPLATE_APPLIED, f'Applied template: "{template.name}"',
            lambda i: i,
            tasks=[*self._state.tasks, *new_tasks],
        )
        return new_tasks

    def add_task_template(self, template: TaskTemplate) -> TaskTemplate:
        return self._add("task_templates", template)

    def update_task_template(self, template_id: str, **changes) -> TaskTemplate | None:
        return self._update("task_templates", template_id, **changes)

    def remove_task_template(self, template_id: str) -> bool:
        return self._remove("task_templates", template_id)

    # ── AI-backed actions ───────────────────────────────────────────
    # Each awaits the provider first and commits once afterwards; a failed
    # call leaves the state untouched and the error propagates.

    def _ai_kwargs(self) -> dict:
        return {"generate": self._generate} if self._generate else {}

    async def generate_risk_assessment(self, tender_id: str) -> RiskAssessment | None:
        from ..ai import service

        item = self.get_watchlist_item(tender_id)
        if item is None:
            return None
        result = await service.assess_tender_risk(
            item.tender, item.quote_subtotal(), self._state.ai_config, **self._ai_kwargs()
        )
        assessment = replace(result, generated_at=self._clock())
        self._update_item(
            tender_id, ActivityType.RISK_ASSESSMENT_GENERATED, "Generated a new risk assessment.",
            lambda i: replace(i, risk_assessment=assessment),
        )
        return assessment

    async def generate_document_analysis(self, tender_id: str, document_id: str) -> DocumentAnalysis | None:
        from ..ai import service

        item = self.get_watchlist_item(tender_id)
        document = next((d for d in item.documents if d.id == document_id), None) if item else None
        if document is None:
            return None
        result = await service.analyze_document(document, self._state.ai_config, **self._ai_kwargs())
        analysis = replace(result, generated_at=self._clock())
        self._update_item(
            tender_id, ActivityType.DOCUMENT_ANALYZED, f"Analyzed document: {document.file_name or document.name}",
            lambda i: replace(
                i, documents=[replace(d, analysis=analysis) if d.id == document_id else d for d in i.documents]
            ),
        )
        return analysis

    async def generate_ai_summary(self, tender_id: str) -> str | None:
        from ..ai import service

        item = self.get_watchlist_item(tender_id)
        if item is None:
            return None
        summary = await service.generate_workspace_summary(item.tender, self._state.ai_config, **self._ai_kwargs())
        self._update_item(
            tender_id, ActivityType.NOTE_UPDATED, "Generated AI summary.",
            lambda i: replace(i, ai_summary=summary),
        )
        return summary

    async def categorize_with_ai(self, tender_id: str) -> str | None:
        from ..ai import service

        item = self.get_watchlist_item(tender_id)
        if item is None:
            return None
        category = await service.categorize_tender(item.tender, self._state.ai_config, **self._ai_kwargs())
        self.update_tender_category(tender_id, category)
        return category

    async def generate_ai_insights(self, tender_id: str):
        from ..ai import service

        item = self.get_watchlist_item(tender_id)
        if item is None:
            return None
        insights = await service.extract_tender_insights(item.tender, self._state.ai_config, **self._ai_kwargs())
        self._update_item(
            tender_id, ActivityType.NOTE_UPDATED, "Generated AI insights.",
            lambda i: replace(i, ai_insights=insights),
        )
        return insights

    # ── Catalog ─────────────────────────────────────────────────────

    def add_catalog_item(self, item: CatalogItem) -> CatalogItem:
        return self._add("catalog", item)

    def update_catalog_item(self, catalog_id: str, **changes) -> CatalogItem | None:
        return self._update("catalog", catalog_id, **changes)

    def update_catalog_item_from_quote_item(self, catalog_id: str, quote_item: QuoteItem) -> CatalogItem | None:
        return self._update(
            "catalog", catalog_id,
            item_name=quote_item.item_name,
            description=quote_item.description,
            manufacturer=quote_item.manufacturer,
            model=quote_item.model,
            technical_specs=dict(quote_item.technical_details),
        )

    def remove_catalog_item(self, catalog_id: str) -> bool:
        """Remove the entry and clear ``catalog_item_ref`` on every quote line."""
        if self._find("catalog", catalog_id) is None:
            return False

        def unlink(item: WatchlistItem) -> WatchlistItem:
            if not any(q.catalog_item_ref == catalog_id for q in item.quote_items):
                return item
            return replace(item, quote_items=[
                replace(q, catalog_item_ref=None) if q.catalog_item_ref == catalog_id else q
                for q in item.quote_items
            ])

        return self._remove("catalog", catalog_id, watchlist=[unlink(i) for i in self._state.watchlist])

    # ── Vendors ─────────────────────────────────────────────────────

    def add_vendor(self, vendor: Vendor) -> Vendor:
        return self._add("vendors", vendor)

    def update_vendor(self, vendor_id: str, **changes) -> Vendor | None:
        return self._update("vendors", vendor_id, **changes)

    def remove_vendor(self, vendor_id: str) -> bool:
        """Remove the vendor and clear ``vendor_id`` on catalog items, shipments and POs."""
        state = self._state
        if self._find("vendors", vendor_id) is None:
            return False

        def unlink_pos(item: WatchlistItem) -> WatchlistItem:
            if not any(p.vendor_id == vendor_id for p in item.purchase_orders):
                return item
            return replace(item, purchase_orders=[
                replace(p, vendor_id=None) if p.vendor_id == vendor_id else p for p in item.purchase_orders
            ])

        return self._remove(
            "vendors", vendor_id,
            catalog=[replace(c, vendor_id=None) if c.vendor_id == vendor_id else c for c in state.catalog],
            shipments=[replace(s, vendor_id=None) if s.vendor_id == vendor_id else s for s in state.shipments],
            watchlist=[unlink_pos(i) for i in state.watchlist],
        )

    def add_vendor_document(
        self, vendor_id: str, name: str, data: str, mime_type: str,
        category: VendorDocumentCategory, uploaded_by: str,
    ) -> Vendor | None:
        vendor = self._find("vendors", vendor_id)
        if vendor is None:
            return None
        document = VendorDocument(
            id=_new_id(), name=name, category=VendorDocumentCategory(category), file_data=data,
            mime_type=mime_type, uploaded_at=self._clock(), uploaded_by=uploaded_by,
        )
        return self._update("vendors", vendor_id, documents=[*vendor.documents, document])

    def remove_vendor_document(self, vendor_id: str, document_id: str) -> Vendor | None:
        vendor = self._find("vendors", vendor_id)
        if vendor is None:
            return None
        return self._update("vendors", vendor_id, documents=[d for d in vendor.documents if d.id != document_id])

    # ── Clients ─────────────────────────────────────────────────────

    def add_client(self, client: Client) -> Client:
        return self._add("clients", client)

    def update_client(self, client_id: str, **changes) -> Client | None:
        return self._update("clients", client_id, **changes)

    def remove_client(self, client_id: str) -> bool:
        """Remove the client and clear ``financial_details.client_id`` where it points at it."""
        if self._find("clients", client_id) is None:
            return False

        def unlink(item: WatchlistItem) -> WatchlistItem:
            if item.financial_details.client_id != client_id:
                return item
            return replace(item, financial_details=replace(item.financial_details, client_id=None))

        return self._remove("clients", client_id, watchlist=[unlink(i) for i in self._state.watchlist])

    def add_contact_to_client(self, client_id: str, contact: Contact) -> Client | None:
        client = self._find("clients", client_id)
        if client is None:
            return None
        return self._update("clients", client_id, contacts=[*client.contacts, _with_id(contact)])

    def update_contact_in_client(self, client_id: str, contact: Contact) -> Client | None:
        client = self._find("clients", client_id)
        if client is None:
            return None
        return self._update(
            "clients", client_id, contacts=[contact if c.id == contact.id else c for c in client.contacts]
        )

    def remove_contact_from_client(self, client_id: str, contact_id: str) -> Client | None:
        client = self._find("clients", client_id)
        if client is None:
            return None
        return self._update("clients", client_id, contacts=[c for c in client.contacts if c.id != contact_id])

    def add_interaction_to_client(self, client_id: str, interaction: Interaction) -> Client | None:
        client = self._find("clients", client_id)
        if client is None:
            return None
        return self._update("clients", client_id, interactions=[*client.interactions, _with_id(interaction)])

    def add_client_document(
        self, client_id: str, name: str, data: str, mime_type: str,
        category: ClientDocumentCategory, uploaded_by: str,
    ) -> Client | None:
        client = self._find("clients", client_id)
        if client is None:
            return None
        document = ClientDocument(
            id=_new_id(), name=name, category=ClientDocumentCategory(category), file_data=data,
            mime_type=mime_type, uploaded_at=self._clock(), uploaded_by=uploaded_by,
        )
        return self._update("clients", client_id, documents=[*client.documents, document])

    def remove_client_document(self, client_id: str, document_id: str) -> Client | None:
        client = self._find("clients", client_id)
        if client is None:
            return None
        return self._update("clients", client_id, documents=[d for d in client.documents if d.id != document_id])

    # ── Team ────────────────────────────────────────────────────────

    def add_team_member(self, member: TeamMember) -> TeamMember:
        return self._add("team_members", member)

    def update_team_member(self, member_id: str, **changes) -> TeamMember | None:
        return self._update("team_members", member_id, **changes)

    def remove_team_member(self, member_id: str) -> bool:
        """Remove the member and clear every assignment that names them."""
        state = self._state
        if self._find("team_members", member_id) is None:
            return False

        def unlink_task(task: Task) -> Task:
            changes = {}
            if task.assigned_to_id == member_id:
                changes["assigned_to_id"] = None
            if task.assigned_by_id == member_id:
                changes["assigned_by_id"] = None
            return replace(task, **changes) if changes else task

        extra = dict(
            watchlist=[
                replace(i, assigned_team_member_id=None) if i.assigned_team_member_id == member_id else i
                for i in state.watchlist
            ],
            tasks=[unlink_task(t) for t in state.tasks],
            vendors=[
                replace(v, assigned_team_member_id=None) if v.assigned_team_member_id == member_id else v
                for v in state.vendors
            ],
            catalog=[
                replace(c, assigned_person_id=None) if c.assigned_person_id == member_id else c
                for c in state.catalog
            ],
        )
        if state.current_user_id == member_id:
            extra["current_user_id"] = None
        return self._remove("team_members", member_id, **extra)

    def set_current_user(self, member_id: str | None) -> None:
        self._commit(current_user_id=member_id)

    # ── Shipments ───────────────────────────────────────────────────

    def add_shipment(self, shipment: Shipment) -> Shipment:
        return self._add("shipments", shipment)

    def update_shipment(self, shipment_id: str, **changes) -> Shipment | None:
        return self._update("shipments", shipment_id, **changes)

    def remove_shipment(self, shipment_id: str) -> bool:
        return self._remove("shipments", shipment_id)

    # ── Tasks ───────────────────────────────────────────────────────

    def add_task(self, task: Task) -> Task:
        """Add a task; assigning it on a watched tender logs TASK_ASSIGNED there."""
        task = _with_id(task)
        assignee = self.get_team_member(task.assigned_to_id)
        if task.tender_id and assignee and self.get_watchlist_item(task.tender_id):
            self._update_item(
                task.tender_id, ActivityType.TASK_ASSIGNED, f'Task "{task.title}" assigned to {assignee.name}.',
                lambda i: i,
                tasks=[*self._state.tasks, task],
            )
            return task
        return self._add("tasks", task)

    def update_task(self, task_id: str, **changes) -> Task | None:
        return self._update("tasks", task_id, **changes)

    def update_task_status(self, task_id: str, status: TaskStatus) -> Task | None:
        return self._update("tasks", task_id, status=TaskStatus(status))

    def remove_task(self, task_id: str) -> bool:
        return self._remove("tasks", task_id)

    # ── Expenses ────────────────────────────────────────────────────
    # An expense booked against a watched tender is logged on that tender.

    def _expense_change(self, expense: Expense, activity: ActivityType, description: str, expenses: list[Expense]):
        if expense.tender_id and self.get_watchlist_item(expense.tender_id):
            self._update_item(expense.tender_id, activity, description, lambda i: i, expenses=expenses)
        else:
            self._commit(expenses=expenses)

    def add_expense(self, expense: Expense) -> Expense:
        expense = _with_id(expense)
        self._expense_change(
            expense, ActivityType.EXPENSE_ADDED, f"Added expense: {expense.description}",
            [*self._state.expenses, expense],
        )
        return expense

    def update_expense(self, expense_id: str, **changes) -> Expense | None:
        current = self._find("expenses", expense_id)
        if current is None:
            return None
        updated = replace(current, **changes)
        self._expense_change(
            updated, ActivityType.EXPENSE_UPDATED, f"Updated expense: {updated.description}",
            [updated if e.id == expense_id else e for e in self._state.expenses],
        )
        return updated

    def remove_expense(self, expense_id: str) -> bool:
        current = self._find("expenses", expense_id)
        if current is None:
            return False
        self._expense_change(
            current, ActivityType.EXPENSE_REMOVED, f"Removed expense: {current.description}",
            [e for e in self._state.expenses if e.id != expense_id],
        )
        return True

    # ── Notifications ───────────────────────────────────────────────

    def add_notification(self, notification: Notification) -> Notification:
        return self._add("notifications", notification)

    def mark_notification_as_read(self, notification_id: str) -> Notification | None:
        return self._update("notifications", notification_id, is_read=True)

    def mark_all_notifications_as_read(self) -> int:
        unread = sum(1 for n in self._state.notifications if not n.is_read)
        if unread:
            self._commit(notifications=[
                n if n.is_read else replace(n, is_read=True) for n in self._state.notifications
            ])
        return unread

    def remove_notification(self, notification_id: str) -> bool:
        return self._remove("notifications", notification_id)

    # ── Accounting ──────────────────────────────────────────────────

    def add_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        if not entry.is_balanced():
            logger.warning("Journal entry %r does not balance", entry.description)
        return self._add("journal_entries", entry)

    def update_journal_entry(self, entry_id: str, **changes) -> JournalEntry | None:
        return self._update("journal_entries", entry_id, **changes)

    def remove_journal_entry(self, entry_id: str) -> bool:
        return self._remove("journal_entries", entry_id)

    def add_account(self, account: Account) -> Account:
        return self._add("chart_of_accounts", account)

    def update_account(self, account_id: str, **changes) -> Account | None:
        return self._update("chart_of_accounts", account_id, **changes)

    def remove_account(self, account_id: str) -> bool:
        """Remove the account and clear ``account_id`` on journal lines that used it."""
        if self._find("chart_of_accounts", account_id) is None:
            return False

        def unlink(entry: JournalEntry) -> JournalEntry:
            if not any(t.account_id == account_id for t in entry.transactions):
                return entry
            return replace(entry, transactions=[
                replace(t, account_id=None) if t.account_id == account_id else t for t in entry.transactions
            ])

        return self._remove(
            "chart_of_accounts", account_id,
            journal_entries=[unlink(e) for e in self._state.journal_entries],
        )

    # ── Settings ────────────────────────────────────────────────────

    def update_company_profile(self, **changes) -> CompanyProfile:
        profile = replace(self._state.company_profile, **changes)
        self._commit(company_profile=profile)
        return profile

    def update_ai_config(self, **changes) -> AIConfig:
        config = replace(self._state.ai_config, **changes)
        self._commit(ai_config=config)
        return config

    def update_document_settings(self, **changes) -> DocumentSettings:
        settings = replace(self._state.document_settings, **changes)
        self._commit(document_settings=settings)
        return settings

    def update_mail_settings(self, **changes) -> MailSettings:
        settings = replace(self._state.mail_settings, **changes)
        self._commit(mail_settings=settings)
        return settings

    def replace_state(self, state: StoreState) -> None:
        """Swap in a whole snapshot, e.g. after a backup import."""
        self._state = state
        keys = frozenset(STATE_KEYS)
        for listener in list(self._listeners):
            listener(self._state, keys)
