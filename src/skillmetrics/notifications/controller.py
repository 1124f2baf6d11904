from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import current_user_id, list_limit
from ..common.serialization import as_dto_list
from ..container import Container


def register(app: Flask, container: Container) -> None:
    notifications = container.notification_service

    @app.route("/api/notifications", methods=["GET"], endpoint="list_notifications")
    def list_notifications():
        unread_only = request.args.get("unread", "0").lower() in {"1", "true", "yes"}
        items = notifications.list_for_user(user_id=current_user_id(), unread_only=unread_only, limit=list_limit())
        return jsonify(as_dto_list(items))

    @app.route("/api/notifications/<int:notification_id>/read", methods=["POST"], endpoint="mark_notification_read")
    def mark_notification_read(notification_id: int):
        notifications.mark_read(notification_id=notification_id, user_id=current_user_id())
        return "", 204

    @app.route("/api/notifications/read-all", methods=["POST"], endpoint="mark_all_notifications_read")
    def mark_all_notifications_read():
        count = notifications.mark_all_read(user_id=current_user_id())
        return jsonify({"updated": count})
