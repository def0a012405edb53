from __future__ import annotations

from flask import Flask, request

from ..common.web import current_viewer, json_body, optional_int, roles_required, success
from ..container import Container
from ..core.enums import Role


def register(app: Flask, container: Container) -> None:
    service = container.timesheet_service

    @app.route("/api/timesheets", methods=["GET"], endpoint="list_timesheets")
    @roles_required(Role.TRAINER, Role.ADMIN)
    def list_timesheets():
        args = request.args
        result = service.list_timesheets(
            current_viewer(),
            status=args.get("status"),
            week_start=args.get("weekStart"),
            trainer_id=optional_int(args.get("trainerId"), "trainerId"),
            page=args.get("page") or 1,
            limit=args.get("limit") or args.get("pageSize") or 20,
        )
        return success(result, "Timesheets fetched")

    @app.route("/api/timesheets/<int:timesheet_id>", methods=["GET"], endpoint="get_timesheet")
    @roles_required(Role.TRAINER, Role.ADMIN)
    def get_timesheet(timesheet_id: int):
        ts = service.get_timesheet(timesheet_id, current_viewer())
        return success(ts.to_dict(), "Timesheet fetched")

    @app.route("/api/timesheets/<int:timesheet_id>/submit", methods=["POST"], endpoint="submit_timesheet")
    @roles_required(Role.TRAINER)
    def submit_timesheet(timesheet_id: int):
        ts = service.submit(timesheet_id, current_viewer())
        return success(ts.to_dict(), "Timesheet submitted")

    @app.route("/api/timesheets/<int:timesheet_id>/approve", methods=["POST"], endpoint="approve_timesheet")
    @roles_required(Role.ADMIN)
    def approve_timesheet(timesheet_id: int):
        ts = service.approve(timesheet_id, current_viewer().user_id)
        return success(ts.to_dict(), "Timesheet approved")

    @app.route("/api/timesheets/<int:timesheet_id>/reopen", methods=["POST"], endpoint="reopen_timesheet")
    @roles_required(Role.ADMIN)
    def reopen_timesheet(timesheet_id: int):
        reason = json_body().get("reason")
        ts = service.reopen(timesheet_id, current_viewer().user_id, reason)
        return success(ts.to_dict(), "Timesheet reopened")

    @app.route("/api/timesheets/<int:timesheet_id>/export", methods=["GET"], endpoint="export_timesheet")
    @roles_required(Role.TRAINER, Role.ADMIN)
    def export_timesheet(timesheet_id: int):
        file = service.export(timesheet_id, current_viewer(), request.args.get("format") or "csv")
        return app.response_class(
            file.content,
            mimetype=file.mime,
            headers={"Content-Disposition": f'attachment; filename="{file.filename}"'},
        )
