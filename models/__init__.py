"""Core data models for accounts, administrator registrations, complaints, and feedback."""
import uuid
from datetime import datetime

from flask_login import UserMixin
from sqlalchemy.orm import validates
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


def generate_uuid() -> str:
	return str(uuid.uuid4())


COMPLAINT_CATEGORIES: tuple[str, ...] = (
	"Roads",
	"Utilities",
	"Parks",
	"Public Transport",
	"Other",
)

COMPLAINT_PRIORITIES: tuple[str, ...] = (
	"Low",
	"Medium",
	"High",
)

COMPLAINT_STATUSES: tuple[str, ...] = (
	"Pending",
	"In Progress",
	"Resolved",
	"Rejected",
)

TERMINAL_STATUSES: frozenset[str] = frozenset({"Resolved", "Rejected"})

SENTIMENT_LABELS: tuple[str, ...] = (
	"Positive",
	"Negative",
	"Neutral",
)


def _in_clause(column: str, values) -> str:
	quoted = ",".join("'" + value + "'" for value in values)
	return f"{column} IN ({quoted})"


class User(UserMixin, db.Model):
	__tablename__ = "users"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	full_name = db.Column(db.String(150), nullable=False, default="Guest")
	email = db.Column(db.String(255), unique=True, nullable=True, index=True)
	password_hash = db.Column(db.String(255), nullable=True)
	is_guest = db.Column(db.Boolean, default=False, nullable=False)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
	last_login_at = db.Column(db.DateTime, nullable=True)

	complaints = db.relationship("Complaint", back_populates="citizen", lazy="dynamic")
	feedback = db.relationship("Feedback", back_populates="citizen", lazy="dynamic")
	reset_tokens = db.relationship("PasswordResetToken", back_populates="user", lazy="dynamic")

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		if not self.password_hash:
			return False
		return check_password_hash(self.password_hash, password)


class AdminRegistration(db.Model):
	"""Marks a user as an administrator by existing; carries no other meaning."""

	__tablename__ = "admin_registrations"

	user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
	granted_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class PasswordResetToken(db.Model):
	__tablename__ = "password_reset_tokens"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	token_hash = db.Column(db.String(128), nullable=False, unique=True, index=True)
	expires_at = db.Column(db.DateTime, nullable=False)
	consumed_at = db.Column(db.DateTime, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	user = db.relationship("User", back_populates="reset_tokens")

	@property
	def is_expired(self) -> bool:
		return datetime.utcnow() > self.expires_at

	@property
	def is_used(self) -> bool:
		return self.consumed_at is not None


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	citizen_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	title = db.Column(db.String(255), nullable=False)
	category = db.Column(db.String(30), nullable=False, index=True)
	description = db.Column(db.Text, nullable=False)
	location = db.Column(db.String(500), nullable=False)
	contact_name = db.Column(db.String(150), nullable=False)
	contact_email = db.Column(db.String(255), nullable=False, index=True)
	contact_phone = db.Column(db.String(20), nullable=False)
	priority = db.Column(db.String(10), nullable=False, default="Medium", index=True)
	status = db.Column(db.String(20), nullable=False, default="Pending", index=True)
	image_url = db.Column(db.String(1024), nullable=True)
	revision = db.Column(db.Integer, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("status", COMPLAINT_STATUSES), name="ck_complaint_status_valid"),
		db.CheckConstraint(_in_clause("category", COMPLAINT_CATEGORIES), name="ck_complaint_category_valid"),
		db.CheckConstraint(_in_clause("priority", COMPLAINT_PRIORITIES), name="ck_complaint_priority_valid"),
	)
	# Every UPDATE is issued as a compare-and-swap on the revision counter.
	__mapper_args__ = {"version_id_col": revision}

	citizen = db.relationship("User", back_populates="complaints")

	@validates("citizen_id")
	def _validate_citizen_id(self, key, value):
		if self.citizen_id is not None and value != self.citizen_id:
			raise ValueError("Complaint owner cannot be reassigned")
		return value

	@validates("status")
	def _validate_status(self, key, value):
		if value not in COMPLAINT_STATUSES:
			raise ValueError(f"Invalid complaint status: {value}")
		return value

	@property
	def is_terminal(self) -> bool:
		return self.status in TERMINAL_STATUSES

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"title": self.title,
			"category": self.category,
			"description": self.description,
			"location": self.location,
			"contact": {
				"name": self.contact_name,
				"email": self.contact_email,
				"phone": self.contact_phone,
			},
			"priority": self.priority,
			"status": self.status,
			"is_terminal": self.is_terminal,
			"image_url": self.image_url,
			"revision": self.revision,
			"citizen_id": self.citizen_id,
			"created_at": self.created_at.isoformat() if self.created_at else None,
		}


class Feedback(db.Model):
	__tablename__ = "feedback"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	# Plain reference: feedback outlives a deleted complaint, hence the copied title.
	complaint_id = db.Column(db.String(36), nullable=False, index=True)
	complaint_title = db.Column(db.String(255), nullable=False)
	citizen_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	contact_name = db.Column(db.String(150), nullable=True)
	contact_email = db.Column(db.String(255), nullable=True)
	rating = db.Column(db.Integer, nullable=False)
	comments = db.Column(db.Text, nullable=False)
	suggestions = db.Column(db.Text, nullable=True)
	sentiment = db.Column(db.String(10), nullable=True, index=True)
	sentiment_confidence = db.Column(db.Float, nullable=True)
	sentiment_reason = db.Column(db.String(500), nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating_range"),
		db.CheckConstraint(
			"sentiment_confidence IS NULL OR (sentiment_confidence >= 0 AND sentiment_confidence <= 1)",
			name="ck_feedback_confidence_range",
		),
		db.CheckConstraint(
			"(sentiment IS NULL AND sentiment_confidence IS NULL) OR (sentiment IS NOT NULL AND sentiment_confidence IS NOT NULL)",
			name="ck_feedback_sentiment_pair",
		),
		db.CheckConstraint(
			"sentiment IS NULL OR " + _in_clause("sentiment", SENTIMENT_LABELS),
			name="ck_feedback_sentiment_label",
		),
	)

	citizen = db.relationship("User", back_populates="feedback")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"complaint_id": self.complaint_id,
			"complaint_title": self.complaint_title,
			"citizen_id": self.citizen_id,
			"contact": {"name": self.contact_name, "email": self.contact_email},
			"rating": self.rating,
			"comments": self.comments,
			"suggestions": self.suggestions,
			"sentiment": self.sentiment,
			"sentiment_confidence": self.sentiment_confidence,
			"sentiment_reason": self.sentiment_reason,
			"created_at": self.created_at.isoformat() if self.created_at else None,
		}
