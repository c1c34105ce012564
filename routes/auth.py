"""Authentication blueprint: accounts, guest sessions, and password reset."""
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, session, url_for
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from wtforms import BooleanField, Form, PasswordField, StringField
from wtforms.validators import DataRequired, Email, EqualTo, Length

from extensions import db
from models import PasswordResetToken, User
from services.context import Principal
from services.errors import AuthenticationRequired, PermissionDenied, PersistenceDenied, ValidationError
from services.forms import validated
from services.identity import resolve_role
from utils.decorators import portal_view
from utils.email_service import EmailDeliveryError, send_password_reset_email
from utils.security import generate_token, hash_value, normalize_email, password_meets_policy, request_payload

auth_bp = Blueprint("auth", __name__)


class RegistrationForm(Form):
    full_name = StringField("Full Name", validators=[DataRequired(), Length(min=2, max=150)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=12)])
    confirm_password = PasswordField(
        "Confirm Password", validators=[DataRequired(), EqualTo("password", message="Passwords must match.")]
    )


class LoginForm(Form):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember me")


class ForgotPasswordForm(Form):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])


class ResetPasswordForm(Form):
    password = PasswordField("New Password", validators=[DataRequired(), Length(min=12)])
    confirm_password = PasswordField(
        "Confirm Password", validators=[DataRequired(), EqualTo("password", message="Passwords must match.")]
    )


def _user_payload(user: User, role: str) -> dict:
    return {
        "id": user.id,
        "full_name": user.full_name,
        "email": user.email,
        "is_guest": user.is_guest,
        "role": role,
    }


def _commit_or_fail(message: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Account write failed")
        raise PersistenceDenied(message) from exc


def _check_password_policy(password: str) -> None:
    password_ok, reason = password_meets_policy(password)
    if not password_ok:
        raise ValidationError({"password": [reason]})


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


@auth_bp.route("/register", methods=["POST"])
def register():
    data = validated(RegistrationForm, request_payload())
    _check_password_policy(data["password"])

    email = normalize_email(data["email"])
    if User.query.filter_by(email=email).first():
        raise ValidationError({"email": ["An account with this email already exists."]})

    user = User(full_name=data["full_name"].strip(), email=email, is_guest=False, is_active=True)
    user.set_password(data["password"])
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError({"email": ["An account with this email already exists."]})

    login_user(user, remember=True)
    session.permanent = True
    current_app.logger.info("Account registered", extra={"user_id": user.id})
    return jsonify(_user_payload(user, "citizen")), 201


@auth_bp.route("/login", methods=["POST"])
@portal_view
def login(ctx, principal):
    data = validated(LoginForm, request_payload())
    user = User.query.filter_by(email=normalize_email(data["email"])).first()
    if not user or not user.check_password(data["password"]):
        current_app.logger.warning("Login failed", extra={"email": normalize_email(data["email"])})
        raise AuthenticationRequired("Invalid credentials provided.")

    if not user.is_active:
        raise PermissionDenied("Your account is inactive. Please contact support.")

    login_user(user, remember=bool(data.get("remember_me")), duration=timedelta(days=30))
    session.permanent = True
    user.last_login_at = datetime.utcnow()
    _commit_or_fail("Sign-in could not be recorded. Please retry.")
    current_app.logger.info("Login succeeded", extra={"user_id": user.id})

    role = resolve_role(ctx, Principal.from_user(user))
    return jsonify(_user_payload(user, role))


@auth_bp.route("/guest", methods=["POST"])
@portal_view
def guest_login(ctx, principal):
    if principal is not None:
        return jsonify(_user_payload(current_user, resolve_role(ctx, principal)))

    user = User(full_name="Guest", is_guest=True, is_active=True)
    db.session.add(user)
    _commit_or_fail("Guest session could not be started. Please retry.")
    login_user(user, remember=True)
    current_app.logger.info("Guest session started", extra={"user_id": user.id})
    return jsonify(_user_payload(user, "citizen")), 201


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    user_id = current_user.id
    session.clear()
    # After the clear so the remember-me cookie is still revoked.
    logout_user()
    current_app.logger.info("Logout", extra={"user_id": user_id})
    return jsonify({"message": "You have been logged out."})


@auth_bp.route("/me", methods=["GET"])
@portal_view
def me(ctx, principal):
    role = resolve_role(ctx, principal)
    return jsonify(_user_payload(current_user, role))


@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    data = validated(ForgotPasswordForm, request_payload())
    user = User.query.filter_by(email=normalize_email(data["email"]), is_guest=False).first()
    if user and user.is_active:
        token, expires_at = create_password_reset_token(
            user, int(current_app.config.get("PASSWORD_RESET_TTL_MINUTES", 60))
        )
        _commit_or_fail("Password reset could not be started. Please retry.")
        try:
            send_password_reset_email(
                user.email,
                user.full_name,
                url_for("auth.reset_password", token=token, _external=True),
                expires_at.strftime("%Y-%m-%d %H:%M"),
            )
        except EmailDeliveryError as exc:
            current_app.logger.warning("Password reset email failed", extra={"user_id": user.id, "error": str(exc)})
    # Identical response whether or not the address is registered.
    return jsonify({"message": "If an account exists for that email, a reset link has been sent."}), 202


@auth_bp.route("/reset-password/<string:token>", methods=["POST"])
def reset_password(token):
    data = validated(ResetPasswordForm, request_payload())
    _check_password_policy(data["password"])

    record = PasswordResetToken.query.filter_by(token_hash=hash_value(token)).first()
    if not record or record.is_used or record.is_expired:
        raise ValidationError({"token": ["This reset link is invalid or has expired."]})

    user = record.user
    user.set_password(data["password"])
    record.consumed_at = datetime.utcnow()
    db.session.add_all([user, record])
    _commit_or_fail("Password could not be updated. Please retry.")
    current_app.logger.info("Password reset completed", extra={"user_id": user.id})
    return jsonify({"message": "Your password has been updated. You may now sign in."})


def create_password_reset_token(user: User, validity_minutes: int = 60) -> tuple[str, datetime]:
    token = generate_token(24)
    expires_at = datetime.utcnow() + timedelta(minutes=validity_minutes)
    # Only the newest link stays usable.
    PasswordResetToken.query.filter_by(user_id=user.id, consumed_at=None).delete()
    db.session.add(PasswordResetToken(user=user, token_hash=hash_value(token), expires_at=expires_at))
    return token, expires_at
