from __future__ import annotations

from flask import Flask, jsonify
from werkzeug.exceptions import BadRequest

from ..common.http import current_user_id, json_body, optional_int
from ..common.serialization import as_dto, as_dto_list
from ..container import Container

_EDITABLE_FIELDS = ("name", "category", "level", "certification", "notes")


def register(app: Flask, container: Container) -> None:
    skills = container.skill_service

    @app.route("/api/skills", methods=["POST"], endpoint="create_skill")
    def create_skill():
        actor = current_user_id()
        payload = json_body()
        for key in ("name", "category", "level"):
            if not payload.get(key):
                raise BadRequest(f"'{key}' is required")
        skill = skills.create_skill(
            user_id=optional_int(payload, "user_id") or actor,
            name=payload["name"],
            category=payload["category"],
            level=payload["level"],
            certification=payload.get("certification"),
            notes=payload.get("notes"),
            performed_by=actor,
        )
        return jsonify(as_dto(skill)), 201

    @app.route("/api/skills/<int:skill_id>", methods=["GET"], endpoint="get_skill")
    def get_skill(skill_id: int):
        current_user_id()
        data = as_dto(skills.get_skill(skill_id))
        data["endorsements"] = as_dto_list(skills.endorsements_for_skill(skill_id))
        return jsonify(data)

    @app.route("/api/skills/<int:skill_id>", methods=["PATCH"], endpoint="update_skill")
    def update_skill(skill_id: int):
        actor = current_user_id()
        payload = json_body()
        changes = {k: payload[k] for k in _EDITABLE_FIELDS if k in payload}
        skill = skills.update_skill(skill_id, performed_by=actor, reason=payload.get("reason"), **changes)
        return jsonify(as_dto(skill))

    @app.route("/api/skills/<int:skill_id>", methods=["DELETE"], endpoint="delete_skill")
    def delete_skill(skill_id: int):
        current_user_id()
        skills.delete_skill(skill_id)
        return "", 204

    @app.route("/api/skills/<int:skill_id>/history", methods=["GET"], endpoint="skill_history")
    def skill_history(skill_id: int):
        current_user_id()
        return jsonify(as_dto_list(skills.history_for_skill(skill_id)))

    @app.route("/api/skills/<int:skill_id>/endorsements", methods=["POST"], endpoint="endorse_skill")
    def endorse_skill(skill_id: int):
        actor = current_user_id()
        payload = json_body()
        endorsement = skills.endorse(skill_id, endorser_id=actor, comment=payload.get("comment"))
        return jsonify(as_dto(endorsement)), 201
