"""Helpers shared by the JSON views of both panels."""
import functools
import json
import uuid

from django.http import JsonResponse
from django.utils.dateparse import parse_date

from .exceptions import BudgetError, ValidationFailed
from .results import ActionResult

STATUS_BY_CODE = {
    'UNAUTHORIZED': 401,
    'INSUFFICIENT_PERMISSION': 403,
    'ACCESS_DENIED': 403,
    'NOT_FOUND': 404,
    'VALIDATION_ERROR': 400,
    'INSUFFICIENT_FUNDS': 409,
    'ALREADY_DECIDED': 409,
    'INVALID_STATE': 409,
    'DUPLICATE_CODE': 409,
}


def result_response(result):
    if result.success:
        return JsonResponse(result.as_dict())
    return JsonResponse(result.as_dict(), status=STATUS_BY_CODE.get(result.code, 500))


def api_view(view):
    """Let a view return an ActionResult, or raise a BudgetError while reading its input"""
    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            response = view(request, *args, **kwargs)
        except BudgetError as exc:
            response = ActionResult.from_error(exc)
        if isinstance(response, ActionResult):
            return result_response(response)
        return response
    return wrapper


def json_body(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationFailed("Invalid JSON body")
    if not isinstance(data, dict):
        raise ValidationFailed("Expected a JSON object")
    return data


def int_param(request, name):
    value = request.GET.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationFailed(f"Invalid {name}")


def uuid_param(request, name):
    value = request.GET.get(name)
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValidationFailed(f"Invalid {name}")


def date_param(request, name):
    value = request.GET.get(name)
    if not value:
        return None
    try:
        parsed = parse_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationFailed(f"Invalid {name}")
    return parsed
