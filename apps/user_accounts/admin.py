from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .forms import AccountChangeForm, AccountCreationForm
from .models import Division, User


@admin.register(Division)
class DivisionAdmin(admin.ModelAdmin):
    list_display = ('name_local', 'name', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name_local', 'name')


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    form = AccountChangeForm
    add_form = AccountCreationForm

    # The fields to display in the list view
    list_display = ('email', 'name', 'role', 'division', 'is_active', 'is_staff')
    list_filter = ('role', 'is_active', 'is_staff', 'division')
    search_fields = ('email', 'name', 'name_local')
    ordering = ('email',)

    # Fieldsets control how the "Edit User" form looks
    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        ('Personal Info', {'fields': ('name', 'name_local')}),
        ('Organization', {'fields': ('role', 'division')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important dates', {'fields': ('last_login', 'date_joined')}),
    )

    # Email is the username for this user model
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'name', 'role', 'division', 'password1', 'password2'),
        }),
    )
