from django.apps import AppConfig


class EndUserPanelConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.end_user_panel'
    verbose_name = 'End User Panel'
