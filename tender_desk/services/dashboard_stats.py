"""Read-only projections over a store snapshot.

Nothing here mutates the state; every function takes what it needs and
returns fresh values. Callers pass ``today`` to pin the deadline windows.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING

from dateutil import parser as dtparser

from ..config import DASHBOARD_LIST_LIMIT, PRIORITY_TASK_DAYS, RECENT_ACTIVITY_LIMIT, UPCOMING_DEADLINE_DAYS
from ..models.records import Expense, Task, TaskStatus, TeamMember, TeamMemberRole
from ..models.types import OPEN_STATUSES, ActivityLog, InvoiceStatus, TenderStatus, WatchlistItem

if TYPE_CHECKING:
    from ..state.store import StoreState


def _to_date(value: str) -> date | None:
    if not value:
        return None
    try:
        parsed = dtparser.isoparse(value)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.date()


def calculate_remaining_days(closing_date: str, today: date | None = None) -> int | None:
    """Whole days from ``today`` to the closing date; ``None`` when unparseable."""
    closing = _to_date(closing_date)
    if closing is None:
        return None
    return (closing - (today or date.today())).days


def calculate_tender_value(item: WatchlistItem) -> float:
    return item.tender_value()


@dataclass
class UpcomingDeadline:
    item: WatchlistItem
    remaining_days: int


@dataclass
class DashboardStats:
    active_tenders: int
    total_revenue: float
    net_profit: float
    pending_tasks: int
    upcoming_deadlines: list[UpcomingDeadline]
    priority_tasks: list[Task]
    tender_funnel: dict[str, int]
    recent_activity: list[ActivityLog]
    my_active_tenders: int
    my_open_tasks: int
    personal: bool = False


def upcoming_deadlines(watchlist: list[WatchlistItem], today: date | None = None) -> list[UpcomingDeadline]:
    """Open tenders closing within the next 7 days, soonest first, at most 5."""
    today = today or date.today()
    found: list[UpcomingDeadline] = []
    for item in watchlist:
        if item.status not in OPEN_STATUSES:
            continue
        remaining = calculate_remaining_days(item.tender.closing_date, today)
        if remaining is not None and 0 <= remaining <= UPCOMING_DEADLINE_DAYS:
            found.append(UpcomingDeadline(item, remaining))
    found.sort(key=lambda d: d.remaining_days)
    return found[:DASHBOARD_LIST_LIMIT]


def priority_tasks(tasks: list[Task], today: date | None = None) -> list[Task]:
    """Unfinished tasks due between today and today + 3 days, soonest first, at most 5."""
    today = today or date.today()
    horizon = today + timedelta(days=PRIORITY_TASK_DAYS)
    due: list[tuple[date, Task]] = []
    for task in tasks:
        if task.status == TaskStatus.COMPLETED:
            continue
        due_date = _to_date(task.due_date)
        if due_date is not None and today <= due_date <= horizon:
            due.append((due_date, task))
    due.sort(key=lambda pair: pair[0])
    return [task for _, task in due[:DASHBOARD_LIST_LIMIT]]


def tender_funnel(watchlist: list[WatchlistItem]) -> dict[str, int]:
    counts = Counter(item.status for item in watchlist)
    return {status.value: counts.get(status, 0) for status in TenderStatus}


def recent_activity(watchlist: list[WatchlistItem], limit: int = RECENT_ACTIVITY_LIMIT) -> list[ActivityLog]:
    logs = [log for item in watchlist for log in item.activity_log]
    logs.sort(key=lambda log: log.timestamp, reverse=True)
    return logs[:limit]


def total_paid_revenue(watchlist: list[WatchlistItem]) -> float:
    return sum(item.paid_revenue() for item in watchlist)


def compute_dashboard_stats(
    state: StoreState,
    user: TeamMember | None = None,
    today: date | None = None,
) -> DashboardStats:
    """Headline figures for the dashboard.

    A user with the MEMBER role gets a personal view: counts, deadlines,
    priority tasks and activity cover only the tenders and tasks assigned to
    them. Other roles, or no user, see the whole workspace.
    """
    today = today or date.today()
    watchlist, tasks = state.watchlist, state.tasks

    mine = [i for i in watchlist if user and i.assigned_team_member_id == user.id]
    my_tasks = [t for t in tasks if user and t.assigned_to_id == user.id]
    my_active = sum(1 for i in mine if i.status in OPEN_STATUSES)
    my_open = sum(1 for t in my_tasks if t.status != TaskStatus.COMPLETED)

    revenue = total_paid_revenue(watchlist)
    net_profit = revenue - sum(e.amount for e in state.expenses)

    personal = user is not None and user.role == TeamMemberRole.MEMBER
    scope_items = mine if personal else watchlist
    scope_tasks = my_tasks if personal else tasks

    return DashboardStats(
        active_tenders=sum(1 for i in scope_items if i.status in OPEN_STATUSES),
        total_revenue=revenue,
        net_profit=net_profit,
        pending_tasks=sum(1 for t in scope_tasks if t.status != TaskStatus.COMPLETED),
        upcoming_deadlines=upcoming_deadlines(scope_items, today),
        priority_tasks=priority_tasks(scope_tasks, today),
        tender_funnel=tender_funnel(watchlist),
        recent_activity=recent_activity(scope_items),
        my_active_tenders=my_active,
        my_open_tasks=my_open,
        personal=personal,
    )


# ── Finance ─────────────────────────────────────────────────────────


@dataclass
class FinancialStats:
    total_revenue: float
    outstanding_revenue: float
    total_expenses: float
    net_profit: float
    expense_breakdown: dict[str, float] = field(default_factory=dict)


def compute_financial_stats(watchlist: list[WatchlistItem], expenses: list[Expense]) -> FinancialStats:
    invoices = [inv for item in watchlist for inv in item.invoices]
    revenue = sum(inv.amount for inv in invoices if inv.status == InvoiceStatus.PAID)
    outstanding = sum(
        inv.amount for inv in invoices if inv.status in (InvoiceStatus.SENT, InvoiceStatus.OVERDUE)
    )
    total_expenses = sum(e.amount for e in expenses)
    breakdown: dict[str, float] = {}
    for expense in expenses:
        key = expense.category or "Uncategorized"
        breakdown[key] = breakdown.get(key, 0.0) + expense.amount
    return FinancialStats(
        total_revenue=revenue,
        outstanding_revenue=outstanding,
        total_expenses=total_expenses,
        net_profit=revenue - total_expenses,
        expense_breakdown=breakdown,
    )


@dataclass
class TenderProfitability:
    tender_id: str
    tender_title: str
    revenue: float
    total_costs: float
    net_profit: float
    net_margin: float  # percent of revenue, 0 when there is no revenue


def compute_profitability(watchlist: list[WatchlistItem], expenses: list[Expense]) -> list[TenderProfitability]:
    """Per won tender: paid revenue against quote cost plus booked expenses."""
    rows: list[TenderProfitability] = []
    for item in watchlist:
        if item.status != TenderStatus.WON:
            continue
        revenue = item.paid_revenue()
        tender_expenses = sum(e.amount for e in expenses if e.tender_id == item.tender.id)
        costs = item.quote_cost() + tender_expenses
        profit = revenue - costs
        rows.append(TenderProfitability(
            tender_id=item.tender.id,
            tender_title=item.tender.title,
            revenue=revenue,
            total_costs=costs,
            net_profit=profit,
            net_margin=(profit / revenue) * 100 if revenue > 0 else 0.0,
        ))
    rows.sort(key=lambda r: r.net_profit, reverse=True)
    return rows


# ── Analytics ───────────────────────────────────────────────────────


@dataclass
class SourceStats:
    total: int = 0
    won: int = 0
    lost: int = 0


@dataclass
class Analytics:
    total_won: int
    total_lost: int
    total_value_won: float
    win_rate: float
    status_counts: dict[str, int]
    source_stats: dict[str, SourceStats]


def compute_analytics(
    watchlist: list[WatchlistItem],
    start: date | None = None,
    end: date | None = None,
    member_id: str | None = None,
) -> Analytics:
    """Win/loss figures, optionally limited by added date and assignee."""
    items = watchlist
    if start or end:
        def in_range(item: WatchlistItem) -> bool:
            added = _to_date(item.added_at)
            if added is None:
                return False
            return (start is None or added >= start) and (end is None or added <= end)
        items = [i for i in items if in_range(i)]
    if member_id:
        items = [i for i in items if i.assigned_team_member_id == member_id]

    won = [i for i in items if i.status == TenderStatus.WON]
    lost = [i for i in items if i.status == TenderStatus.LOST]
    decided = len(won) + len(lost)

    status_counts = dict(Counter(i.status.value for i in items))
    source_stats: dict[str, SourceStats] = {}
    for item in items:
        stats = source_stats.setdefault(item.tender.source, SourceStats())
        stats.total += 1
        if item.status == TenderStatus.WON:
            stats.won += 1
        elif item.status == TenderStatus.LOST:
            stats.lost += 1

    return Analytics(
        total_won=len(won),
        total_lost=len(lost),
        total_value_won=sum(i.tender_value() for i in won),
        win_rate=(len(won) / decided) * 100 if decided else 0.0,
        status_counts=status_counts,
        source_stats=source_stats,
    )


@dataclass
class MemberPerformance:
    member_id: str
    member_name: str
    tenders_assigned: int
    tenders_won: int
    win_rate: float
    tasks_assigned: int
    tasks_completed: int
    tasks_open: int


def compute_team_performance(
    team_members: list[TeamMember], watchlist: list[WatchlistItem], tasks: list[Task]
) -> list[MemberPerformance]:
    rows: list[MemberPerformance] = []
    for member in team_members:
        assigned = [i for i in watchlist if i.assigned_team_member_id == member.id]
        won = sum(1 for i in assigned if i.status == TenderStatus.WON)
        lost = sum(1 for i in assigned if i.status == TenderStatus.LOST)
        member_tasks = [t for t in tasks if t.assigned_to_id == member.id]
        completed = sum(1 for t in member_tasks if t.status == TaskStatus.COMPLETED)
        rows.append(MemberPerformance(
            member_id=member.id,
            member_name=member.name,
            tenders_assigned=len(assigned),
            tenders_won=won,
            win_rate=(won / (won + lost)) * 100 if won + lost else 0.0,
            tasks_assigned=len(member_tasks),
            tasks_completed=completed,
            tasks_open=len(member_tasks) - completed,
        ))
    return rows
