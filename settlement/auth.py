from flask import jsonify

from settlement.extensions import db, login_manager
from settlement.models import User


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"status": "error", "reason": "unauthorized", "message": "Login required."}), 401
