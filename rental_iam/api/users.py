"""User endpoints delegating to the UserSynchronizer."""

from __future__ import annotations
import logging

from flask import Blueprint, current_app, jsonify, request

from rental_iam.core.errors import ValidationError
from rental_iam.core.models import User
from rental_iam.core.user_synchronizer import UserSynchronizer

bp = Blueprint("users", __name__)

logger = logging.getLogger(__name__)


def _synchronizer() -> UserSynchronizer:
    return current_app.config["USER_SYNCHRONIZER"]


def _user_from_request() -> User:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return User.from_dict(payload)


@bp.route("", methods=["POST"])
def create_user():
    user = _synchronizer().create_user(_user_from_request())
    return jsonify(user.to_dict()), 201


@bp.route("", methods=["GET"])
def list_users():
    return jsonify([user.to_dict() for user in _synchronizer().get_users()]), 200


@bp.route("/<user_id>", methods=["GET"])
def get_user(user_id: str):
    return jsonify(_synchronizer().get_user(user_id).to_dict()), 200


@bp.route("/<user_id>", methods=["PUT"])
def update_user(user_id: str):
    user = _synchronizer().update_user(user_id, _user_from_request())
    return jsonify(user.to_dict()), 200


@bp.route("/<user_id>", methods=["DELETE"])
def delete_user(user_id: str):
    snapshot = _synchronizer().delete_user(user_id)
    logger.info("User %s deleted via API", snapshot.username)
    return jsonify(snapshot.to_dict()), 200
