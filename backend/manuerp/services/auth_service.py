# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Account authentication service.

WHY: Every stock movement must be attributable to a person. Passwords are
hashed with bcrypt; credentials are issued by token_service.

FLOWS:
- signup -> email verification token -> verify_email -> login
- login -> session token (24h)
- forgot password -> reset token (1h) -> reset_password

Email delivery is out of scope: verification and reset links are written to
the application log.
"""

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import ValidationError, ForbiddenError, AccountDeactivatedError, NotFoundError, InvalidTokenError
from ..models import User, ROLES
from ..models.auth import initials_for
from ..validation import EMAIL_RE, ensure_str
from manuerp.time_utils import utcnow
from . import token_service


MIN_PASSWORD_LENGTH = 8

# Self-service signup may not grant administrator rights
SIGNUP_ROLES = tuple(role for role in ROLES if role != "admin")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


class InvalidCredentialsError(ValidationError):
    default_message = "Invalid credentials."


def require_strings(**fields) -> None:
    """JSON numbers, lists and objects in text fields are a 400, not a crash."""
    for name, value in fields.items():
        ensure_str(name, value)


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


def validate_password_confirmation(password: str, confirm_password: str) -> None:
    validate_password_strength(password)
    if password != confirm_password:
        raise PasswordValidationError("Passwords do not match.")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Cost factor comes from BCRYPT_ROUNDS (12 by default; tests lower it).
    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    return (ensure_str("email", email) or "").strip().lower()


def find_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=normalize_email(email)).first()


def create_user(
    *,
    name: str,
    email: str,
    password: str,
    role: str = "operator",
    department: str | None = None,
    employee_id: str | None = None,
    is_verified: bool = False,
    allowed_roles=ROLES,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: bad email, role, or duplicate email
        PasswordValidationError: If password doesn't meet requirements
    """
    require_strings(
        name=name, email=email, password=password, role=role,
        department=department, employeeId=employee_id,
    )
    name = (name or "").strip()
    email = normalize_email(email)

    if not name:
        raise ValidationError("Name is required.")
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format.")
    if role not in allowed_roles:
        raise ValidationError("Invalid role specified.")

    if find_user_by_email(email):
        raise ValidationError("Email already registered.")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
        is_verified=is_verified,
        avatar=initials_for(name),
        department=department,
        employee_id=employee_id,
    )

    db.session.add(user)
    db.session.commit()
    return user


def signup(
    *,
    name: str,
    email: str,
    password: str,
    confirm_password: str,
    role: str = "operator",
) -> tuple[User, str]:
    """
    Self-service registration.

    Returns (user, email_verification_token). The account cannot log in until
    the token is redeemed via verify_email().
    """
    require_strings(name=name, email=email, password=password, confirmPassword=confirm_password, role=role)
    if not all([name, email, password, confirm_password]):
        raise ValidationError("All fields required.")

    if not EMAIL_RE.match(normalize_email(email)):
        raise ValidationError("Invalid email format.")

    validate_password_confirmation(password, confirm_password)

    user = create_user(
        name=name,
        email=email,
        password=password,
        role=role,
        allowed_roles=SIGNUP_ROLES,
    )
    token = token_service.issue_token(subject_id=user.id, purpose=token_service.EMAIL_VERIFICATION)

    current_app.logger.info(
        "Verification link for %s: %s/verify/%s",
        user.email, current_app.config["CLIENT_URL"], token,
    )
    return user, token


def verify_email(token: str) -> tuple[User, bool]:
    """
    Redeem an email verification token.

    Returns (user, already_verified).
    """
    claims = token_service.verify_token(token, purpose=token_service.EMAIL_VERIFICATION)

    user = db.session.get(User, claims.subject_id)
    if user is None:
        raise InvalidTokenError("Invalid verification link.")

    if user.is_verified:
        return user, True

    user.is_verified = True
    db.session.commit()
    return user, False


def authenticate(email: str, password: str, role: str | None = None) -> User:
    """
    Authenticate user with email and password.

    Returns User if credentials valid; raises otherwise:
    - InvalidCredentialsError (400): unknown email or wrong password
    - ForbiddenError (403): email not verified, or requested role differs
    - AccountDeactivatedError (403): is_active is False

    Updates last_login_at timestamp on successful authentication.
    """
    require_strings(email=email, password=password, role=role)
    if not email or not password:
        raise ValidationError("Email and password are required.")

    user = find_user_by_email(email)
    if user is None:
        raise InvalidCredentialsError()

    if not user.is_verified:
        raise ForbiddenError("Please verify your email first.")

    if not user.is_active:
        raise AccountDeactivatedError("Account is deactivated. Contact administrator.")

    if not verify_password(password, user.password_hash):
        raise InvalidCredentialsError()

    # Optional role validation - if role is provided, it must match
    if role and user.role != role:
        raise ForbiddenError(f"Access denied. Expected role: {user.role}")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def request_password_reset(email: str) -> str:
    """Issue a one-hour reset token for email. Returns the token."""
    require_strings(email=email)
    if not email:
        raise ValidationError("Email required.")

    user = find_user_by_email(email)
    if user is None:
        raise ValidationError("Email not found.")

    token = token_service.issue_token(subject_id=user.id, purpose=token_service.PASSWORD_RESET)
    current_app.logger.info(
        "Password reset link for %s: %s/reset/%s",
        user.email, current_app.config["CLIENT_URL"], token,
    )
    return token


def reset_password(token: str, password: str, confirm_password: str) -> User:
    require_strings(password=password, confirmPassword=confirm_password)
    claims = token_service.verify_token(token, purpose=token_service.PASSWORD_RESET)

    if not password or not confirm_password:
        raise ValidationError("All fields required.")
    validate_password_confirmation(password, confirm_password)

    user = db.session.get(User, claims.subject_id)
    if user is None:
        raise ValidationError("Invalid reset link.")

    user.password_hash = hash_password(password)
    db.session.commit()
    return user


def change_password(user_id: int, current_password: str, new_password: str, confirm_password: str) -> None:
    require_strings(
        currentPassword=current_password, newPassword=new_password, confirmPassword=confirm_password,
    )
    if not current_password or not new_password or not confirm_password:
        raise ValidationError("All fields are required.")

    if new_password != confirm_password:
        raise PasswordValidationError("New passwords do not match.")
    validate_password_strength(new_password)

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")

    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect.")

    user.password_hash = hash_password(new_password)
    db.session.commit()


def update_profile(
    user_id: int,
    *,
    name: str | None = None,
    department: str | None = None,
    employee_id: str | None = None,
) -> User:
    require_strings(name=name, department=department, employeeId=employee_id)

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")

    if name:
        user.name = name.strip()
        user.avatar = initials_for(user.name)
    if department:
        user.department = department.strip()
    if employee_id:
        user.employee_id = employee_id.strip()

    db.session.commit()
    return user
