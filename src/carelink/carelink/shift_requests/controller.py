from __future__ import annotations

from flask import Flask

from ..common.validators import parse_int_id
from ..common.web import current_viewer, json_body, list_params_from_args, login_required, roles_required, success
from ..container import Container
from ..core.enums import Role
from .service import NewShiftRequest


def register(app: Flask, container: Container) -> None:
    service = container.shift_request_service

    @app.route("/api/shift-requests", methods=["POST"], endpoint="create_shift_request")
    @login_required
    def create_shift_request():
        viewer = current_viewer()
        body = json_body()
        created = service.create(
            current_user_id=viewer.user_id,
            current_role=viewer.role,
            payload=NewShiftRequest(
                participant_id=body.get("participantId"),
                service=body.get("service"),
                start=body.get("start"),
                end=body.get("end"),
                notes=body.get("notes"),
                preferred_trainer_ids=body.get("preferredTrainerIds") or (),
            ),
        )
        return success(created.to_dict(), "Shift request created", 201)

    @app.route("/api/shift-requests/mine", methods=["GET"], endpoint="my_shift_requests")
    @login_required
    def my_shift_requests():
        viewer = current_viewer()
        result = service.list_mine(user_id=viewer.user_id, role=viewer.role, params=list_params_from_args())
        return success(result, "Shift requests fetched")

    @app.route("/api/shift-requests/participant/mine", methods=["GET"], endpoint="participant_shift_requests")
    @login_required
    def participant_shift_requests():
        viewer = current_viewer()
        result = service.list_for_participant(viewer.user_id, list_params_from_args())
        return success(result, "Shift requests fetched")

    @app.route("/api/shift-requests/trainer/mine", methods=["GET"], endpoint="trainer_shift_requests")
    @roles_required(Role.TRAINER)
    def trainer_shift_requests():
        viewer = current_viewer()
        result = service.list_for_trainer(viewer.user_id, list_params_from_args())
        return success(result, "Assigned shift requests fetched")

    @app.route("/api/admin/shift-requests", methods=["GET"], endpoint="admin_shift_requests")
    @roles_required(Role.ADMIN)
    def admin_shift_requests():
        result = service.list_for_admin(list_params_from_args())
        return success(result, "Shift requests fetched")

    @app.route("/api/admin/shift-requests/approve", methods=["POST"], endpoint="approve_shift_request")
    @roles_required(Role.ADMIN)
    def approve_shift_request():
        viewer = current_viewer()
        body = json_body()
        updated = service.approve_and_assign(
            request_id=parse_int_id(body.get("requestId"), "requestId"),
            trainer_id=parse_int_id(body.get("trainerId"), "trainerId"),
            admin_user_id=viewer.user_id,
        )
        return success(updated.to_dict(), "Shift request approved and trainer assigned")

    @app.route("/api/admin/shift-requests/decline", methods=["POST"], endpoint="decline_shift_request")
    @roles_required(Role.ADMIN)
    def decline_shift_request():
        viewer = current_viewer()
        body = json_body()
        updated = service.decline(
            request_id=parse_int_id(body.get("requestId"), "requestId"),
            admin_user_id=viewer.user_id,
            reason=body.get("reason"),
        )
        return success(updated.to_dict(), "Shift request declined")
