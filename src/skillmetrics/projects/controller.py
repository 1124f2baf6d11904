from __future__ import annotations

from flask import Flask, jsonify, request
from werkzeug.exceptions import BadRequest

from ..common.datetime_utils import parse_optional_date
from ..common.http import current_user_id, date_field, json_body, list_limit, required_int
from ..common.serialization import as_dto, as_dto_list
from ..container import Container


def register(app: Flask, container: Container) -> None:
    workflow = container.resource_workflow

    @app.route("/api/projects/<int:project_id>/resources", methods=["GET"], endpoint="project_resources")
    def project_resources(project_id: int):
        current_user_id()
        return jsonify(as_dto_list(workflow.list_for_project(project_id)))

    @app.route("/api/projects/<int:project_id>/resources", methods=["POST"], endpoint="assign_resource")
    def assign_resource(project_id: int):
        actor = current_user_id()
        payload = json_body()
        if "allocation" not in payload:
            raise BadRequest("'allocation' is required")
        resource = workflow.assign(
            project_id=project_id,
            user_id=required_int(payload, "user_id"),
            role=payload.get("role") or "",
            allocation=payload["allocation"],
            start_date=date_field(payload, "start_date"),
            end_date=date_field(payload, "end_date"),
            performed_by=actor,
            notes=payload.get("notes"),
        )
        return jsonify(as_dto(resource)), 201

    @app.route("/api/resources/<int:resource_id>", methods=["GET"], endpoint="get_resource")
    def get_resource(resource_id: int):
        current_user_id()
        return jsonify(as_dto(workflow.get_resource(resource_id)))

    @app.route("/api/resources/<int:resource_id>", methods=["PATCH"], endpoint="update_resource")
    def update_resource(resource_id: int):
        actor = current_user_id()
        payload = json_body()
        changes = {k: payload[k] for k in ("role", "allocation", "notes") if k in payload}
        for key in ("start_date", "end_date"):
            if key in payload:
                changes[key] = date_field(payload, key)
        resource = workflow.update(resource_id, performed_by=actor, note=payload.get("note"), **changes)
        return jsonify(as_dto(resource))

    @app.route("/api/resources/<int:resource_id>", methods=["DELETE"], endpoint="remove_resource")
    def remove_resource(resource_id: int):
        actor = current_user_id()
        payload = request.get_json(silent=True) or {}
        workflow.remove(resource_id, performed_by=actor, note=payload.get("note"))
        return "", 204

    @app.route("/api/resources/<int:resource_id>/history", methods=["GET"], endpoint="resource_history")
    def resource_history(resource_id: int):
        current_user_id()
        return jsonify(as_dto_list(workflow.history_for_resource(resource_id)))

    @app.route("/api/projects/<int:project_id>/resource-history", methods=["GET"], endpoint="project_resource_history")
    def project_resource_history(project_id: int):
        current_user_id()
        return jsonify(as_dto_list(workflow.history_for_project(project_id, limit=list_limit())))

    @app.route("/api/users/<int:user_id>/allocation", methods=["GET"], endpoint="user_allocation")
    def user_allocation(user_id: int):
        current_user_id()
        try:
            as_of = parse_optional_date(request.args.get("as_of"))
        except ValueError:
            raise BadRequest("'as_of' must be a date (YYYY-MM-DD)")
        return jsonify(as_dto(workflow.allocation_summary(user_id, as_of)))
