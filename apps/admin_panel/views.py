from django.views.decorators.http import require_GET, require_http_methods, require_POST

from apps.budgets.http import api_view, int_param, json_body
from . import services


# Divisions

@require_POST
@api_view
def create_division(request):
    return services.create_division(request.user, json_body(request))


@require_http_methods(["PATCH", "DELETE"])
@api_view
def division_detail(request, division_id):
    if request.method == 'DELETE':
        return services.delete_division(request.user, division_id)
    return services.update_division(request.user, division_id, json_body(request))


@require_GET
@api_view
def division_statistics(request, division_id):
    return services.get_division_statistics(request.user, division_id)


@require_GET
@api_view
def users_not_in_division(request, division_id):
    return services.get_users_not_in_division(request.user, division_id)


# Users

@require_http_methods(["GET", "POST"])
@api_view
def user_list(request):
    if request.method == 'POST':
        return services.create_user(request.user, json_body(request))
    return services.get_users(request.user, division_id=int_param(request, 'division'))


@require_http_methods(["PATCH", "DELETE"])
@api_view
def user_detail(request, user_id):
    if request.method == 'DELETE':
        return services.delete_user(request.user, user_id)
    return services.update_user(request.user, user_id, json_body(request))


@require_POST
@api_view
def toggle_user_status(request, user_id):
    return services.toggle_user_status(request.user, user_id)


@require_POST
@api_view
def assign_user_to_division(request, user_id):
    data = json_body(request)
    return services.assign_user_to_division(request.user, user_id, data.get('division_id'))


@require_GET
@api_view
def audit_trail(request):
    return services.get_audit_trail(
        request.user,
        model_name=request.GET.get('model'),
        action=request.GET.get('action'),
        user_id=int_param(request, 'user'),
    )
