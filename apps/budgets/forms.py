from decimal import Decimal

from django import forms
from django.forms.models import model_to_dict

from .exceptions import ValidationFailed
from .models import (
    Activity,
    Budget,
    BudgetAllocation,
    BudgetCategory,
    Expense,
    ExpenseDocument,
    Output,
    Plan,
)
from .utils import MAX_FISCAL_YEAR, MIN_FISCAL_YEAR


def first_form_error(form):
    """Message of the first failing field, in field order"""
    for errors in form.errors.values():
        return errors[0]
    return "Validation error"


def validate(form):
    if not form.is_valid():
        raise ValidationFailed(first_form_error(form))
    return form.cleaned_data


def bound_form(form_class, instance, data):
    """ModelForm over the instance's current values with ``data`` applied on top"""
    initial = model_to_dict(instance, fields=form_class._meta.fields)
    return form_class({**initial, **data}, instance=instance)


def _positive_amount(value):
    if value is not None and value <= Decimal('0'):
        raise forms.ValidationError("Amount must be positive")
    return value


class BudgetForm(forms.Form):
    """
    New budget input. Each level of the plan/output/activity chain is either
    picked from the existing rows or typed as a custom name, in which case
    the service creates the row.
    """
    fiscal_year = forms.IntegerField(min_value=MIN_FISCAL_YEAR, max_value=MAX_FISCAL_YEAR)
    category = forms.ModelChoiceField(
        queryset=BudgetCategory.objects.all(),
        error_messages={'required': "Category is required"}
    )
    plan = forms.ModelChoiceField(queryset=Plan.objects.all(), required=False)
    output = forms.ModelChoiceField(queryset=Output.objects.all(), required=False)
    activity = forms.ModelChoiceField(queryset=Activity.objects.all(), required=False)
    custom_plan_name = forms.CharField(max_length=255, required=False)
    custom_output_name = forms.CharField(max_length=255, required=False)
    custom_activity_name = forms.CharField(max_length=255, required=False)
    allocated_amount = forms.DecimalField(max_digits=18, decimal_places=4)
    description = forms.CharField(required=False)
    description_local = forms.CharField(required=False)

    def clean_allocated_amount(self):
        return _positive_amount(self.cleaned_data.get('allocated_amount'))

    def clean(self):
        cleaned_data = super().clean()
        for level in ('plan', 'output', 'activity'):
            if not cleaned_data.get(level) and not cleaned_data.get(f'custom_{level}_name'):
                if level not in self.errors:
                    self.add_error(level, f"{level.title()} is required")
        return cleaned_data


class BudgetUpdateForm(forms.ModelForm):

    class Meta:
        model = Budget
        fields = [
            'category', 'plan', 'output', 'activity',
            'allocated_amount', 'description', 'description_local',
        ]

    def clean_allocated_amount(self):
        return _positive_amount(self.cleaned_data.get('allocated_amount'))


class BudgetAllocationForm(forms.ModelForm):
    """The parent budget is resolved and locked by the service, not the form"""

    class Meta:
        model = BudgetAllocation
        fields = ['name_local', 'description_local', 'allocated_amount', 'status', 'start_date', 'end_date']
        error_messages = {
            'name_local': {'required': "Thai name is required"},
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['status'].required = False

    def clean_allocated_amount(self):
        return _positive_amount(self.cleaned_data.get('allocated_amount'))

    def clean_status(self):
        return self.cleaned_data.get('status') or BudgetAllocation.STATUS_ACTIVE

    def clean(self):
        cleaned_data = super().clean()
        start, end = cleaned_data.get('start_date'), cleaned_data.get('end_date')
        if start and end and end < start:
            self.add_error('end_date', "End date must be on or after the start date")
        return cleaned_data

    def save(self, commit=True):
        allocation = super().save(commit=False)
        # The Thai name doubles as the main name
        allocation.name = allocation.name_local
        allocation.description = allocation.description_local
        if commit:
            allocation.save()
        return allocation


class ExpenseForm(forms.ModelForm):
    """Budget, allocation and division come from the service"""

    class Meta:
        model = Expense
        fields = [
            'code', 'title', 'title_local', 'description', 'description_local',
            'amount', 'expense_date', 'category',
        ]
        error_messages = {
            'code': {'required': "Expense code is required"},
            'title': {'required': "Title is required"},
            'description': {'required': "Description is required"},
            'category': {'required': "Category is required"},
        }

    def clean_amount(self):
        return _positive_amount(self.cleaned_data.get('amount'))


class ExpenseDocumentForm(forms.ModelForm):

    class Meta:
        model = ExpenseDocument
        fields = ['document']
