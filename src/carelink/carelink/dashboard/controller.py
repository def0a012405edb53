from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import parse_optional_datetime
from ..common.web import current_viewer, roles_required, success
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import ValidationError


def register(app: Flask, container: Container) -> None:
    service = container.dashboard_service

    @app.route("/api/dashboard/trainer", methods=["GET"], endpoint="trainer_dashboard")
    @roles_required(Role.TRAINER, Role.ADMIN)
    def trainer_dashboard():
        raw = request.args.get("trainerId")
        trainer_id = None
        if raw:
            if not raw.isdigit():
                raise ValidationError("Invalid trainerId", errors={"trainerId": "invalid"})
            trainer_id = int(raw)
        summary = service.trainer_summary(current_viewer(), trainer_id)
        return success(summary, "Trainer shift summary")

    @app.route("/api/dashboard/admin", methods=["GET"], endpoint="admin_dashboard")
    @roles_required(Role.ADMIN)
    def admin_dashboard():
        summary = service.admin_summary(
            date_from=parse_optional_datetime(request.args.get("dateFrom"), "dateFrom"),
            date_to=parse_optional_datetime(request.args.get("dateTo"), "dateTo"),
        )
        return success(summary, "Admin dashboard summary")
