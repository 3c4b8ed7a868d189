from django.contrib import admin
from .models import (
    Activity,
    Approval,
    Budget,
    BudgetAllocation,
    BudgetCategory,
    Expense,
    ExpenseDocument,
    Notification,
    Output,
    Plan,
)

# Register your models here.
admin.site.register(BudgetCategory)
admin.site.register(Plan)
admin.site.register(Output)
admin.site.register(Activity)
admin.site.register(Notification)


class BudgetAllocationInline(admin.TabularInline):
    model = BudgetAllocation
    extra = 0
    fields = ['code', 'name_local', 'allocated_amount', 'status']
    readonly_fields = ['code']


@admin.register(Budget)
class BudgetAdmin(admin.ModelAdmin):
    list_display = [
        'code',
        'name_local',
        'division',
        'fiscal_year',
        'get_allocated',
        'get_remaining',
        'status',
        'created_by',
    ]
    list_filter = ['fiscal_year', 'status', 'division', 'category']
    search_fields = ['code', 'name', 'name_local']
    readonly_fields = ['code', 'created_at', 'updated_at']
    inlines = [BudgetAllocationInline]

    fieldsets = (
        ('Budget Information', {
            'fields': ('code', 'name', 'name_local', 'fiscal_year', 'division', 'status')
        }),
        ('Classification', {
            'fields': ('category', 'plan', 'output', 'activity')
        }),
        ('Amounts', {
            'fields': ('allocated_amount', 'start_date', 'end_date')
        }),
        ('Metadata', {
            'fields': ('description', 'description_local', 'created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def get_allocated(self, obj):
        return f"฿{obj.allocated_amount:,.2f}"
    get_allocated.short_description = 'Allocated'

    def get_remaining(self, obj):
        return f"฿{obj.remaining_amount:,.2f}"
    get_remaining.short_description = 'Unallocated'


@admin.register(BudgetAllocation)
class BudgetAllocationAdmin(admin.ModelAdmin):
    list_display = ['code', 'name_local', 'budget', 'allocated_amount', 'status', 'created_by']
    list_filter = ['status', 'budget__fiscal_year']
    search_fields = ['code', 'name_local', 'budget__code']
    readonly_fields = ['code', 'created_at', 'updated_at']


class ExpenseDocumentInline(admin.TabularInline):
    model = ExpenseDocument
    extra = 0
    readonly_fields = ['file_format', 'file_size', 'uploaded_at']


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ['code', 'title', 'budget', 'amount', 'expense_date', 'status', 'created_by']
    list_filter = ['status', 'division', 'category']
    search_fields = ['code', 'title', 'title_local', 'budget__code']
    date_hierarchy = 'expense_date'
    inlines = [ExpenseDocumentInline]


@admin.register(ExpenseDocument)
class ExpenseDocumentAdmin(admin.ModelAdmin):
    list_display = ['file_name', 'expense', 'uploaded_by', 'get_file_size', 'uploaded_at']
    list_filter = ['uploaded_at', 'file_format']
    search_fields = ['file_name', 'expense__code']
    readonly_fields = ['uploaded_at', 'file_size', 'file_format']
    date_hierarchy = 'uploaded_at'

    def get_file_size(self, obj):
        """Display file size in human-readable format"""
        return obj.get_file_size_display()
    get_file_size.short_description = 'File Size'


@admin.register(Approval)
class ApprovalAdmin(admin.ModelAdmin):
    list_display = ['type', 'reference_id', 'level', 'approver', 'status', 'decided_at']
    list_filter = ['type', 'status']
    search_fields = ['reference_id', 'approver__email', 'approver__name']
    readonly_fields = ['type', 'reference_id', 'budget', 'expense', 'level', 'created_at']
