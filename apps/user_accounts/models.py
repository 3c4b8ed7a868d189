from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
from django.utils import timezone


class Division(models.Model):
    """Organizational unit owning users, budgets and expenses"""
    name = models.CharField(max_length=255, blank=True)
    name_local = models.CharField(max_length=255)
    description_local = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name_local']
        verbose_name = "Division"
        verbose_name_plural = "Divisions"

    def __str__(self):
        return self.name_local or self.name


class UserManager(BaseUserManager):
    use_in_migrations = True

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Users must have an email address")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('role', User.ROLE_SUPER_ADMIN)
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    ROLE_SUPER_ADMIN = 'SUPER_ADMIN'
    ROLE_ADMIN = 'ADMIN'
    ROLE_APPROVER = 'APPROVER'
    ROLE_STAFF = 'STAFF'
    ROLE_VIEWER = 'VIEWER'

    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super Admin'),
        (ROLE_ADMIN, 'Admin'),
        (ROLE_APPROVER, 'Approver'),
        (ROLE_STAFF, 'Staff'),
        (ROLE_VIEWER, 'Viewer'),
    ]

    ADMIN_ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN)
    # Roles that receive approval requests for their division
    APPROVER_ROLES = (ROLE_APPROVER, ROLE_ADMIN, ROLE_SUPER_ADMIN)

    email = models.EmailField(unique=True)
    name = models.CharField(max_length=255)
    name_local = models.CharField(max_length=255, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_STAFF)
    division = models.ForeignKey(
        Division,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='users'
    )

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False, help_text="Can log into the Django admin site")
    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    class Meta:
        ordering = ['name']
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.name} <{self.email}>"

    def get_full_name(self):
        return self.name

    def get_short_name(self):
        return self.name

    @property
    def is_admin(self):
        """ADMIN and SUPER_ADMIN share the administrative capabilities"""
        return self.role in self.ADMIN_ROLES

    @property
    def is_super_admin(self):
        return self.role == self.ROLE_SUPER_ADMIN

    @property
    def can_approve(self):
        return self.role in self.APPROVER_ROLES
