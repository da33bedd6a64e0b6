# Overview: Flask API routes for auth and user administration; parses input and returns JSON responses.

# backend/manuerp/routes/auth.py
"""
Authentication API routes.

Public:
- POST /signup, GET /verify/<token>, POST /login, POST /forgot, POST /reset/<token>

Authenticated:
- GET/PUT /profile, PUT /change-password

Admin only:
- GET/POST /users, PUT/DELETE /users/<id>, GET /admin/stats

Session tokens are signed credentials (24h). Send them as
Authorization: Bearer <token>.
"""

from flask import Blueprint, jsonify, g, current_app

from ..services import auth_service, user_service, token_service
from ..decorators import require_auth, require_admin
from ..errors import ValidationError
from .common import json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/signup")
def signup_route():
    """
    Self-service registration.

    The account must verify its email before logging in. The verification
    link is written to the application log.
    """
    data = json_body()

    user, _token = auth_service.signup(
        name=data.get("name"),
        email=data.get("email"),
        password=data.get("password"),
        confirm_password=data.get("confirmPassword"),
        role=data.get("role") or "operator",
    )

    return jsonify({
        "message": "Signup successful. Please check your email to verify your account.",
        "user": user.to_dict(),
    }), 201


@auth_bp.get("/verify/<token>")
def verify_route(token: str):
    _user, already_verified = auth_service.verify_email(token)
    if already_verified:
        return jsonify({"message": "Email already verified."}), 200
    return jsonify({"message": "Email verified. You can now log in."}), 200


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and issue a session token.

    Body: {email, password, role?}. If role is given it must match the
    account's role.
    """
    data = json_body()
    email = data.get("email")

    try:
        user = auth_service.authenticate(email, data.get("password"), data.get("role"))
    except auth_service.InvalidCredentialsError:
        current_app.logger.info("Failed login for %s", email)
        raise

    token = token_service.issue_session_token(user)
    current_app.logger.info("User %s logged in", user.id)

    return jsonify({"token": token, "user": user.to_dict()}), 200


@auth_bp.post("/forgot")
def forgot_route():
    data = json_body()
    auth_service.request_password_reset(data.get("email"))
    return jsonify({"message": "Password reset link sent to your email."}), 200


@auth_bp.post("/reset/<token>")
def reset_route(token: str):
    data = json_body()
    auth_service.reset_password(token, data.get("password"), data.get("confirmPassword"))
    return jsonify({
        "message": "Password reset successful. You can now login with your new password."
    }), 200


@auth_bp.get("/profile")
@require_auth
def get_profile_route():
    user = user_service.get_user(g.principal.id)
    return jsonify({"user": user.to_dict()}), 200


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    data = json_body()
    user = auth_service.update_profile(
        g.principal.id,
        name=data.get("name"),
        department=data.get("department"),
        employee_id=data.get("employeeId"),
    )
    return jsonify({"message": "Profile updated successfully.", "user": user.to_dict()}), 200


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    data = json_body()
    auth_service.change_password(
        g.principal.id,
        data.get("currentPassword"),
        data.get("newPassword"),
        data.get("confirmPassword"),
    )
    return jsonify({"message": "Password changed successfully."}), 200


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@auth_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    users = user_service.list_users()
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@auth_bp.post("/users")
@require_auth
@require_admin
def create_user_route():
    data = json_body()
    user = user_service.create_user(
        name=data.get("name"),
        email=data.get("email"),
        password=data.get("password"),
        role=data.get("role"),
        department=data.get("department"),
        employee_id=data.get("employeeId"),
    )
    current_app.logger.info("User %s created by admin %s", user.id, g.principal.id)
    return jsonify({"message": "User created successfully.", "user": user.to_dict()}), 201


@auth_bp.put("/users/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    data = json_body()

    is_active = data.get("isActive")
    if is_active is not None and not isinstance(is_active, bool):
        raise ValidationError("isActive must be true or false")

    user = user_service.update_user(
        user_id,
        actor_id=g.principal.id,
        name=data.get("name"),
        email=data.get("email"),
        role=data.get("role"),
        is_active=is_active,
    )
    return jsonify({"message": "User updated successfully.", "user": user.to_dict()}), 200


@auth_bp.delete("/users/<int:user_id>")
@require_auth
@require_admin
def delete_user_route(user_id: int):
    user_service.delete_user(user_id, actor_id=g.principal.id)
    return jsonify({"message": "User deleted successfully."}), 200


@auth_bp.get("/admin/stats")
@require_auth
@require_admin
def stats_route():
    return jsonify(user_service.system_stats()), 200
