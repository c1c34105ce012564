"""WTForms definitions used to validate service-layer input before any external call."""
from typing import Any, Dict, Mapping, Type

from werkzeug.datastructures import MultiDict
from wtforms import Form, IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import URL, AnyOf, DataRequired, Email, Length, NumberRange, Optional, Regexp

from models import COMPLAINT_CATEGORIES, COMPLAINT_PRIORITIES, COMPLAINT_STATUSES
from services.errors import ValidationError


def _strip(value):
    if value is None:
        return value
    return str(value).strip()


class ComplaintForm(Form):
    title = StringField(
        "Title",
        filters=[_strip],
        validators=[DataRequired(), Length(min=5, max=255, message="Title must be at least 5 characters.")],
    )
    category = SelectField(
        "Category",
        choices=[(c, c) for c in COMPLAINT_CATEGORIES],
        validate_choice=False,
        validators=[DataRequired(message="Please select a category."), AnyOf(COMPLAINT_CATEGORIES)],
    )
    description = TextAreaField(
        "Description",
        filters=[_strip],
        validators=[DataRequired(), Length(min=10, max=5000, message="Description must be at least 10 characters.")],
    )
    location = StringField(
        "Location",
        filters=[_strip],
        validators=[DataRequired(), Length(min=5, max=500, message="Location must be at least 5 characters.")],
    )
    name = StringField(
        "Full name",
        filters=[_strip],
        validators=[DataRequired(), Length(min=2, max=150, message="Please enter your full name.")],
    )
    email = StringField(
        "Email",
        filters=[_strip],
        validators=[DataRequired(), Email(message="Please enter a valid email address."), Length(max=255)],
    )
    phone = StringField(
        "Phone",
        filters=[_strip],
        validators=[DataRequired(), Regexp(r"^\d{10}$", message="Phone number must be 10 digits.")],
    )
    priority = SelectField(
        "Priority",
        choices=[(p, p) for p in COMPLAINT_PRIORITIES],
        validate_choice=False,
        validators=[DataRequired(message="Please select a priority level."), AnyOf(COMPLAINT_PRIORITIES)],
    )
    image_url = StringField("Image URL", filters=[_strip], validators=[Optional(), URL(), Length(max=1024)])


class StatusForm(Form):
    status = SelectField(
        "Status",
        choices=[(s, s) for s in COMPLAINT_STATUSES],
        validate_choice=False,
        validators=[DataRequired(), AnyOf(COMPLAINT_STATUSES, message="Unknown complaint status.")],
    )


class FeedbackForm(Form):
    rating = IntegerField(
        "Rating",
        validators=[DataRequired(message="Please select a rating."), NumberRange(min=1, max=5, message="Rating must be between 1 and 5.")],
    )
    comments = TextAreaField(
        "Comments",
        filters=[_strip],
        validators=[DataRequired(), Length(min=10, max=5000, message="Comments must be at least 10 characters long.")],
    )
    suggestions = TextAreaField("Suggestions", filters=[_strip], validators=[Optional(), Length(max=5000)])


class SentimentForm(Form):
    feedback_text = TextAreaField(
        "Feedback",
        filters=[_strip],
        validators=[DataRequired(), Length(min=10, max=5000, message="Feedback must be at least 10 characters long.")],
    )


class TrackForm(Form):
    email = StringField("Email", filters=[_strip], validators=[DataRequired(), Email(message="Please enter a valid email.")])
    name = StringField("Full name", filters=[_strip], validators=[Optional(), Length(min=2, max=150)])


def validated(form_class: Type[Form], data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate ``data`` with ``form_class`` and return cleaned values or raise ValidationError."""
    formdata = MultiDict({key: value for key, value in (data or {}).items() if value is not None})
    form = form_class(formdata)
    if not form.validate():
        raise ValidationError({name: list(errors) for name, errors in form.errors.items()})
    return form.data
