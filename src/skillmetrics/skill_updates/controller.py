from __future__ import annotations

from flask import Flask, jsonify, request
from werkzeug.exceptions import BadRequest

from ..common.http import current_user_id, json_body, list_limit, optional_int, required_int
from ..common.serialization import as_dto, as_dto_list
from ..container import Container
from ..core.enums import UpdateStatus


def register(app: Flask, container: Container) -> None:
    workflow = container.skill_update_workflow

    def _status_arg():
        raw = (request.args.get("status") or "").strip().upper()
        if not raw:
            return None
        try:
            return UpdateStatus(raw)
        except ValueError:
            raise BadRequest(f"Unknown status: {raw}")

    @app.route("/api/skill-updates", methods=["GET"], endpoint="list_skill_updates")
    def list_skill_updates():
        current_user_id()
        updates = workflow.list_by_status(_status_arg(), limit=list_limit())
        return jsonify(as_dto_list(updates))

    @app.route("/api/skill-updates", methods=["POST"], endpoint="submit_skill_update")
    def submit_skill_update():
        payload = json_body()
        if not payload.get("proposed_level"):
            raise BadRequest("'proposed_level' is required")
        update = workflow.submit(
            requester_id=current_user_id(),
            target_skill_id=optional_int(payload, "skill_id"),
            proposed_name=payload.get("proposed_name"),
            proposed_category=payload.get("proposed_category"),
            proposed_level=payload["proposed_level"],
            justification=payload.get("justification"),
            proposed_certification=payload.get("proposed_certification"),
        )
        return jsonify(as_dto(update)), 201

    @app.route("/api/skill-updates/<int:update_id>", methods=["GET"], endpoint="get_skill_update")
    def get_skill_update(update_id: int):
        current_user_id()
        return jsonify(as_dto(workflow.get(update_id)))

    @app.route("/api/skill-updates/<int:update_id>", methods=["DELETE"], endpoint="delete_skill_update")
    def delete_skill_update(update_id: int):
        current_user_id()
        workflow.delete(update_id)
        return "", 204

    @app.route("/api/skill-updates/<int:update_id>/reviewer", methods=["POST"], endpoint="assign_skill_update_reviewer")
    def assign_skill_update_reviewer(update_id: int):
        current_user_id()
        payload = json_body()
        update = workflow.assign_reviewer(update_id, required_int(payload, "reviewer_id"))
        return jsonify(as_dto(update))

    @app.route("/api/skill-updates/<int:update_id>/approve", methods=["POST"], endpoint="approve_skill_update")
    def approve_skill_update(update_id: int):
        payload = request.get_json(silent=True) or {}
        update = workflow.approve(update_id, reviewer_id=current_user_id(), comments=payload.get("comments"))
        return jsonify(as_dto(update))

    @app.route("/api/skill-updates/<int:update_id>/reject", methods=["POST"], endpoint="reject_skill_update")
    def reject_skill_update(update_id: int):
        payload = request.get_json(silent=True) or {}
        update = workflow.reject(update_id, reviewer_id=current_user_id(), comments=payload.get("comments"))
        return jsonify(as_dto(update))

    @app.route("/api/users/<int:user_id>/skill-updates", methods=["GET"], endpoint="user_skill_updates")
    def user_skill_updates(user_id: int):
        current_user_id()
        return jsonify(as_dto_list(workflow.list_for_user(user_id, limit=list_limit())))
