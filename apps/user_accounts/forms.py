from django.contrib.auth.forms import UserChangeForm, UserCreationForm
from .models import User


class AccountCreationForm(UserCreationForm):
    """Admin add form for the email-based user model"""

    class Meta:
        model = User
        fields = ('email', 'name', 'role', 'division')


class AccountChangeForm(UserChangeForm):

    class Meta:
        model = User
        fields = '__all__'
