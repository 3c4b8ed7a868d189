import io
import logging
from collections import OrderedDict
from decimal import Decimal

from django.db.models import Count
from openpyxl import Workbook
from openpyxl.styles import Font

from .managers import ZERO
from .models import Approval, Budget, Expense
from .permissions import require_actor
from .results import operation
from .utils import current_fiscal_year

logger = logging.getLogger(__name__)

TIMELINE_LIMIT = 100

SUMMARY_COLUMNS = [
    ('code', 'Code'),
    ('name', 'Name'),
    ('division', 'Division'),
    ('category', 'Category'),
    ('allocated', 'Allocated'),
    ('spent', 'Spent'),
    ('remaining', 'Remaining'),
    ('utilization_rate', 'Utilization %'),
    ('expense_count', 'Expenses'),
]


def _rate(part, whole):
    if not whole:
        return Decimal('0.00')
    return (part / whole * 100).quantize(Decimal('0.01'))


def build_budget_summary(actor, fiscal_year=None):
    fiscal_year = fiscal_year or current_fiscal_year()
    budgets = (
        Budget.objects.filter(fiscal_year=fiscal_year)
        .select_related('division', 'category')
        .with_ledger()
        .order_by('code')
    )
    if not actor.is_admin:
        budgets = budgets.filter(division_id=actor.division_id)

    expense_counts = dict(
        Expense.objects.filter(budget__in=budgets).consuming()
        .order_by().values('budget').annotate(n=Count('pk')).values_list('budget', 'n')
    )

    summary = []
    for budget in budgets:
        allocated = budget.allocated_amount
        spent = budget.spent_amount
        summary.append({
            'budget_id': str(budget.pk),
            'code': budget.code,
            'name': budget.name,
            'division': budget.division.name_local or budget.division.name,
            'category': budget.category.name,
            'allocated': allocated,
            'spent': spent,
            'remaining': allocated - spent,
            'utilization_rate': _rate(spent, allocated),
            'expense_count': expense_counts.get(budget.pk, 0),
        })

    count = len(summary)
    totals = {
        'total_budgets': count,
        'total_allocated': sum((row['allocated'] for row in summary), ZERO),
        'total_spent': sum((row['spent'] for row in summary), ZERO),
        'total_remaining': sum((row['remaining'] for row in summary), ZERO),
        'average_utilization': (
            (sum(row['utilization_rate'] for row in summary) / count).quantize(Decimal('0.01'))
            if count else Decimal('0.00')
        ),
    }
    return {'fiscal_year': fiscal_year, 'summary': summary, 'totals': totals}


def _jsonable(report):
    """Decimals as strings, for the JSON boundary"""
    def convert(value):
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        if isinstance(value, list):
            return [convert(v) for v in value]
        return value
    return convert(report)


@operation("Failed to generate budget summary report")
def get_budget_summary_report(actor, fiscal_year=None):
    require_actor(actor)
    return _jsonable(build_budget_summary(actor, fiscal_year))


def _hours(delta):
    return round(delta.total_seconds() / 3600, 2)


def _average(values):
    return round(sum(values) / len(values), 2) if values else 0


@operation("Failed to generate approval timeline report")
def get_approval_timeline_report(actor, start=None, end=None):
    """Decided approvals, newest decision first, with how long each took"""
    require_actor(actor)
    approvals = (
        Approval.objects.exclude(status=Approval.STATUS_PENDING)
        .filter(decided_at__isnull=False)
        .select_related('approver__division', 'budget', 'expense')
        .order_by('-decided_at')
    )
    if start:
        approvals = approvals.filter(created_at__date__gte=start)
    if end:
        approvals = approvals.filter(created_at__date__lte=end)

    timeline = []
    for approval in approvals:
        duration = _hours(approval.decided_at - approval.created_at)
        subject = approval.budget.name if approval.budget_id else approval.expense.title
        division = approval.approver.division
        timeline.append({
            'approval_id': str(approval.pk),
            'type': approval.type,
            'level': approval.level,
            'status': approval.status,
            'approver_name': approval.approver.name,
            'approver_division': division.name_local if division else None,
            'item_name': subject,
            'created_at': approval.created_at.isoformat(),
            'decided_at': approval.decided_at.isoformat(),
            'duration_hours': duration,
            'duration_days': round(duration / 24, 2),
        })

    by_level = OrderedDict()
    for row in sorted(timeline, key=lambda r: r['level']):
        by_level.setdefault(row['level'], []).append(row['duration_hours'])

    approved = [t['duration_hours'] for t in timeline if t['status'] == Approval.STATUS_APPROVED]
    rejected = [t['duration_hours'] for t in timeline if t['status'] == Approval.STATUS_REJECTED]
    statistics = {
        'total_approvals': len(timeline),
        'approved_count': len(approved),
        'rejected_count': len(rejected),
        'avg_approval_time': _average(approved),
        'avg_rejection_time': _average(rejected),
        'avg_overall_time': _average([t['duration_hours'] for t in timeline]),
        'by_level': [
            {'level': level, 'count': len(durations), 'avg_duration': _average(durations)}
            for level, durations in by_level.items()
        ],
    }
    return {'timeline': timeline[:TIMELINE_LIMIT], 'statistics': statistics}


def export_budget_summary_workbook(report):
    """Render a ``build_budget_summary`` report as .xlsx bytes"""
    wb = Workbook()
    ws = wb.active
    ws.title = f"FY{report['fiscal_year']}"

    ws.append([label for _, label in SUMMARY_COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for row in report['summary']:
        ws.append([row[key] for key, _ in SUMMARY_COLUMNS])

    totals = report['totals']
    ws.append([])
    ws.append([
        'Total', None, None, None,
        totals['total_allocated'], totals['total_spent'], totals['total_remaining'],
        totals['average_utilization'], None,
    ])
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)

    for column in ('E', 'F', 'G'):
        for cell in ws[column][1:]:
            cell.number_format = '#,##0.00'
    ws.column_dimensions['B'].width = 48

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.debug("Exported %s budget rows for FY%s", len(report['summary']), report['fiscal_year'])
    return buffer.getvalue()


@operation("Failed to export budget summary report")
def export_budget_summary(actor, fiscal_year=None):
    require_actor(actor)
    report = build_budget_summary(actor, fiscal_year)
    return {'fiscal_year': report['fiscal_year'], 'content': export_budget_summary_workbook(report)}
