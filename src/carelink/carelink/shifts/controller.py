from __future__ import annotations

from flask import Flask

from ..common.validators import parse_int_id
from ..common.web import current_viewer, json_body, list_params_from_args, login_required, roles_required, success
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import ValidationError
from .service import ClockOutReport


def register(app: Flask, container: Container) -> None:
    service = container.shift_service

    @app.route("/api/shifts/clock-in", methods=["POST"], endpoint="clock_in")
    @roles_required(Role.TRAINER)
    def clock_in():
        body = json_body()
        shift = service.clock_in(
            trainer_user_id=current_viewer().user_id,
            shift_request_id=parse_int_id(body.get("shiftRequestId"), "shiftRequestId"),
        )
        return success(shift.to_dict(), "Clocked in", 201)

    @app.route("/api/shifts/clock-out", methods=["POST"], endpoint="clock_out")
    @roles_required(Role.TRAINER)
    def clock_out():
        body = json_body()
        raw_report = body.get("report") or {}
        if not isinstance(raw_report, dict):
            raise ValidationError("report must be an object")
        result = service.clock_out(
            trainer_user_id=current_viewer().user_id,
            shift_request_id=parse_int_id(body.get("shiftRequestId"), "shiftRequestId"),
            report=ClockOutReport(
                activities=raw_report.get("activities"),
                progress=raw_report.get("progress"),
                incidents=raw_report.get("incidents"),
                km=raw_report.get("km"),
            ),
        )
        return success(
            {"shift": result["shift"].to_dict(), "timesheet": result["timesheet"].to_dict()},
            "Clocked out",
        )

    @app.route("/api/shifts/past", methods=["GET"], endpoint="past_shifts")
    @login_required
    def past_shifts():
        result = service.list_past_shifts(current_viewer(), list_params_from_args())
        return success(result, "Past shifts fetched")
