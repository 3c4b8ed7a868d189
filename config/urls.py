from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('apps.end_user_panel.urls')),
    path('api/admin/', include('apps.admin_panel.urls')),
]
