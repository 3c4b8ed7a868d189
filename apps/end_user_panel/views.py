from django.http import HttpResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from apps.budgets import approvals, notifications, reports, services
from apps.budgets.exceptions import NotFound, ValidationFailed
from apps.budgets.http import api_view, date_param, int_param, json_body, uuid_param
from apps.budgets.models import Approval

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

DECISIONS = {
    (Approval.TYPE_BUDGET, 'approve'): approvals.approve_budget,
    (Approval.TYPE_BUDGET, 'reject'): approvals.reject_budget,
    (Approval.TYPE_EXPENSE, 'approve'): approvals.approve_expense,
    (Approval.TYPE_EXPENSE, 'reject'): approvals.reject_expense,
}


# Budgets

@require_http_methods(["GET", "POST"])
@api_view
def budget_list(request):
    if request.method == 'POST':
        return services.create_budget(request.user, json_body(request))
    return services.get_budgets(
        request.user,
        division_id=int_param(request, 'division'),
        fiscal_year=int_param(request, 'fiscal_year'),
        search=request.GET.get('search'),
    )


@require_http_methods(["GET", "PATCH", "DELETE"])
@api_view
def budget_detail(request, budget_id):
    if request.method == 'PATCH':
        return services.update_budget(request.user, budget_id, json_body(request))
    if request.method == 'DELETE':
        return services.delete_budget(request.user, budget_id)
    return services.get_budget(request.user, budget_id)


@require_POST
@api_view
def submit_budget(request, budget_id):
    return approvals.submit_budget_for_approval(request.user, budget_id)


@require_GET
@api_view
def budget_statistics(request):
    return services.get_budget_statistics(request.user, fiscal_year=int_param(request, 'fiscal_year'))


# Allocations

@require_http_methods(["GET", "POST"])
@api_view
def allocation_list(request):
    if request.method == 'POST':
        return services.create_budget_allocation(request.user, json_body(request))
    return services.get_budget_allocations(
        request.user, budget_id=uuid_param(request, 'budget'), status=request.GET.get('status')
    )


@require_http_methods(["GET", "PATCH", "DELETE"])
@api_view
def allocation_detail(request, allocation_id):
    if request.method == 'PATCH':
        return services.update_budget_allocation(request.user, allocation_id, json_body(request))
    if request.method == 'DELETE':
        return services.delete_budget_allocation(request.user, allocation_id)
    return services.get_budget_allocation(request.user, allocation_id)


# Expenses

@require_http_methods(["GET", "POST"])
@api_view
def expense_list(request):
    if request.method == 'POST':
        return services.create_expense(request.user, json_body(request))
    return services.get_expenses(
        request.user, budget_id=uuid_param(request, 'budget'), status=request.GET.get('status')
    )


@require_http_methods(["GET", "PATCH", "DELETE"])
@api_view
def expense_detail(request, expense_id):
    if request.method == 'PATCH':
        return services.update_expense(request.user, expense_id, json_body(request))
    if request.method == 'DELETE':
        return services.delete_expense(request.user, expense_id)
    return services.get_expense(request.user, expense_id)


@require_POST
@api_view
def submit_expense(request, expense_id):
    return approvals.submit_expense_for_approval(request.user, expense_id)


@require_POST
@api_view
def upload_expense_document(request, expense_id):
    uploaded_file = request.FILES.get('document')
    if uploaded_file is None:
        raise ValidationFailed("Document is required")
    return services.add_expense_document(request.user, expense_id, uploaded_file)


@require_http_methods(["DELETE"])
@api_view
def delete_expense_document(request, document_id):
    return services.delete_expense_document(request.user, document_id)


# Approvals

@require_GET
@api_view
def pending_approvals(request):
    return approvals.get_pending_approvals(request.user)


@require_GET
@api_view
def pending_approval_count(request):
    return approvals.get_pending_approval_count(request.user)


@require_POST
@api_view
def decide_approval(request, approval_id, decision):
    data = json_body(request)
    action = DECISIONS.get((data.get('type'), decision))
    if action is None:
        raise ValidationFailed("Invalid approval type")
    return action(request.user, approval_id, data.get('comments'))


# Notifications

@require_GET
@api_view
def notification_list(request):
    return notifications.get_notifications(request.user, unread_only=request.GET.get('unread') == '1')


@require_POST
@api_view
def read_notification(request, notification_id):
    return notifications.mark_notification_as_read(request.user, notification_id)


@require_POST
@api_view
def read_all_notifications(request):
    return notifications.mark_all_notifications_as_read(request.user)


# Lookups

LOOKUPS = {
    'divisions': services.get_divisions,
    'categories': services.get_budget_categories,
    'plans': services.get_plans,
    'outputs': services.get_outputs,
    'activities': services.get_activities,
    'fiscal-years': services.get_fiscal_years,
}


@require_GET
@api_view
def lookup(request, kind):
    fetch = LOOKUPS.get(kind)
    if fetch is None:
        raise NotFound("Unknown lookup")
    return fetch(request.user)


@require_GET
@api_view
def active_budgets(request):
    return services.get_active_budgets(request.user, division_id=int_param(request, 'division'))


# Reports

@require_GET
@api_view
def budget_summary_report(request):
    return reports.get_budget_summary_report(request.user, fiscal_year=int_param(request, 'fiscal_year'))


@require_GET
@api_view
def export_budget_summary(request):
    result = reports.export_budget_summary(request.user, fiscal_year=int_param(request, 'fiscal_year'))
    if not result.success:
        return result
    export = result.data
    response = HttpResponse(export['content'], content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="budget-summary-FY{export["fiscal_year"]}.xlsx"'
    return response


@require_GET
@api_view
def approval_timeline_report(request):
    return reports.get_approval_timeline_report(
        request.user, start=date_param(request, 'start'), end=date_param(request, 'end')
    )
