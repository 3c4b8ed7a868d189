from django.urls import path
from . import views

urlpatterns = [
    path('budgets/', views.budget_list, name='budget_list'),
    path('budgets/statistics/', views.budget_statistics, name='budget_statistics'),
    path('budgets/active/', views.active_budgets, name='active_budgets'),
    path('budgets/<uuid:budget_id>/', views.budget_detail, name='budget_detail'),
    path('budgets/<uuid:budget_id>/submit/', views.submit_budget, name='submit_budget'),

    path('allocations/', views.allocation_list, name='allocation_list'),
    path('allocations/<uuid:allocation_id>/', views.allocation_detail, name='allocation_detail'),

    path('expenses/', views.expense_list, name='expense_list'),
    path('expenses/<uuid:expense_id>/', views.expense_detail, name='expense_detail'),
    path('expenses/<uuid:expense_id>/submit/', views.submit_expense, name='submit_expense'),
    path('expenses/<uuid:expense_id>/documents/', views.upload_expense_document, name='upload_expense_document'),
    path('documents/<int:document_id>/', views.delete_expense_document, name='delete_expense_document'),

    path('approvals/', views.pending_approvals, name='pending_approvals'),
    path('approvals/count/', views.pending_approval_count, name='pending_approval_count'),
    path('approvals/<uuid:approval_id>/<str:decision>/', views.decide_approval, name='decide_approval'),

    path('notifications/', views.notification_list, name='notification_list'),
    path('notifications/read-all/', views.read_all_notifications, name='read_all_notifications'),
    path('notifications/<int:notification_id>/read/', views.read_notification, name='read_notification'),

    path('lookups/<str:kind>/', views.lookup, name='lookup'),

    path('reports/budget-summary/', views.budget_summary_report, name='budget_summary_report'),
    path('reports/budget-summary/export/', views.export_budget_summary, name='export_budget_summary'),
    path('reports/approval-timeline/', views.approval_timeline_report, name='approval_timeline_report'),
]
