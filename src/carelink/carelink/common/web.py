from __future__ import annotations

from functools import wraps
from typing import Any, Optional

from flask import jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from ..users.model import Viewer
from .datetime_utils import parse_optional_datetime
from .pagination import ListParams


def current_viewer() -> Viewer:
    """Identity put in the session by the upstream auth layer."""

    if "user_id" not in session:
        raise AuthenticationError("Authentication required")
    try:
        return Viewer(user_id=int(session["user_id"]), role=Role(session.get("role")))
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid session")


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        current_viewer()
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles: Role):
    allowed = {r.value for r in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            viewer = current_viewer()
            if viewer.role.value not in allowed:
                raise AuthorizationError("Forbidden")
            return view(*args, **kwargs)

        return wrapper

    return decorator


def success(data: Any = None, message: str = "OK", status: int = 200):
    return jsonify({"success": True, "message": message, "data": data}), status


def json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


def optional_int(value: Optional[str], field_name: str) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}", errors={field_name: "invalid"})


def list_params_from_args() -> ListParams:
    """Build ListParams from the query string (`status` may repeat or be comma separated)."""

    args = request.args
    statuses: list[str] = []
    for raw in args.getlist("status"):
        statuses.extend(s.strip().upper() for s in raw.split(",") if s.strip())

    try:
        page = int(args.get("page") or 1)
        limit = int(args.get("limit") or 0) or None
    except ValueError:
        raise ValidationError("page and limit must be integers")

    kwargs: dict[str, Any] = {}
    if limit is not None:
        kwargs["limit"] = limit

    return ListParams(
        page=page,
        statuses=tuple(statuses),
        q=args.get("q"),
        date_from=parse_optional_datetime(args.get("dateFrom"), "dateFrom"),
        date_to=parse_optional_datetime(args.get("dateTo"), "dateTo"),
        only_upcoming=_flag(args.get("onlyUpcoming")),
        only_past=_flag(args.get("onlyPast")),
        sort=args.get("sort") or "createdAt:desc",
        trainer_id=optional_int(args.get("trainerId"), "trainerId"),
        participant_id=optional_int(args.get("participantId"), "participantId"),
        **kwargs,
    )
