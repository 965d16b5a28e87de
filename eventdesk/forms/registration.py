"""Registrant details submitted to the free and paid admission paths."""

from __future__ import annotations

from wtforms import Form, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional, Regexp

EMAIL_PATTERN = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'


def strip_value(value):
    return value.strip() if isinstance(value, str) else value


class RegistrantForm(Form):
    """Registrant fields shared by registration, payment creation and execution."""

    name = StringField(
        "Full Name",
        filters=[strip_value],
        validators=[DataRequired(message="Name is required."), Length(max=255)],
    )
    email = StringField(
        "Email Address",
        filters=[strip_value],
        validators=[
            DataRequired(message="Email is required."),
            Regexp(EMAIL_PATTERN, message="Please enter a valid email address."),
            Length(max=255),
        ],
    )
    phone = StringField(
        "Phone Number",
        filters=[strip_value],
        validators=[DataRequired(message="Phone number is required."), Length(max=32)],
    )
    school = StringField(
        "School / Institution",
        filters=[strip_value],
        validators=[DataRequired(message="School is required."), Length(max=255)],
    )
    note = TextAreaField(
        "Note",
        filters=[strip_value],
        validators=[Optional(), Length(max=2000)],
    )
    category = StringField(
        "Category",
        filters=[strip_value],
        validators=[Optional(), Length(max=255)],
    )

    def registrant_data(self) -> dict:
        return {
            'name': self.name.data,
            'email': self.email.data,
            'phone': self.phone.data,
            'school': self.school.data,
            'note': self.note.data or None,
            'category': self.category.data or None,
        }


class RegistrationUpdateForm(Form):
    """Admin edits of a registration's contact fields; all optional."""

    name = StringField("Full Name", filters=[strip_value], validators=[Optional(), Length(max=255)])
    email = StringField(
        "Email Address",
        filters=[strip_value],
        validators=[Optional(), Regexp(EMAIL_PATTERN, message="Please enter a valid email address.")],
    )
    phone = StringField("Phone Number", filters=[strip_value], validators=[Optional(), Length(max=32)])
    school = StringField("School / Institution", filters=[strip_value], validators=[Optional(), Length(max=255)])
    note = TextAreaField("Note", filters=[strip_value], validators=[Optional(), Length(max=2000)])
