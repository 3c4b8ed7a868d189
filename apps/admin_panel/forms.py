from django import forms
from apps.user_accounts.models import Division, User


class DivisionForm(forms.ModelForm):

    class Meta:
        model = Division
        fields = ['name', 'name_local', 'description_local']
        error_messages = {
            'name_local': {'required': "Division name (Thai) is required"},
        }


class UserForm(forms.ModelForm):
    password = forms.CharField(
        min_length=6,
        required=False,
        error_messages={'min_length': "Password must be at least 6 characters"}
    )

    class Meta:
        model = User
        fields = ['email', 'name', 'name_local', 'role', 'division', 'is_active']
        error_messages = {
            'email': {'invalid': "Invalid email address"},
            'name': {'required': "Name is required"},
            'division': {'required': "Division is required"},
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['division'].required = True

    def save(self, commit=True):
        user = super().save(commit=False)
        if self.cleaned_data.get("password"):
            user.set_password(self.cleaned_data["password"])
        if commit:
            user.save()
        return user


class UserUpdateForm(UserForm):
    """Same fields; the service drops role, division and is_active for self-service edits"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['division'].required = False
