import json
from typing import Any, Dict

from django.http import JsonResponse


class InvalidRequestBody(Exception):
    """Raised when a request body is not a JSON object."""


def parse_body(request) -> Dict[str, Any]:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidRequestBody(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidRequestBody("Request body must be a JSON object.")
    return payload


def json_error(message: str, status: int = 400, **extra: Any) -> JsonResponse:
    payload: Dict[str, Any] = {"error": message}
    payload.update(extra)
    return JsonResponse(payload, status=status, json_dumps_params={"ensure_ascii": False})


def json_ok(payload: Any, status: int = 200) -> JsonResponse:
    return JsonResponse(
        payload,
        status=status,
        safe=isinstance(payload, dict),
        json_dumps_params={"ensure_ascii": False},
    )
