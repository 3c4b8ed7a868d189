from django.urls import path
from . import views

urlpatterns = [
    path('divisions/', views.create_division, name='create_division'),
    path('divisions/<int:division_id>/', views.division_detail, name='division_detail'),
    path('divisions/<int:division_id>/statistics/', views.division_statistics, name='division_statistics'),
    path('divisions/<int:division_id>/candidates/', views.users_not_in_division, name='users_not_in_division'),
    path('users/', views.user_list, name='user_list'),
    path('users/<int:user_id>/', views.user_detail, name='user_detail'),
    path('users/<int:user_id>/toggle-status/', views.toggle_user_status, name='toggle_user_status'),
    path('users/<int:user_id>/division/', views.assign_user_to_division, name='assign_user_to_division'),
    path('audit-trail/', views.audit_trail, name='audit_trail'),
]
