"""Event create/edit form."""

from __future__ import annotations

from wtforms import FloatField, Form, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp

from eventdesk.forms.registration import strip_value


class EventForm(Form):
    title = StringField(
        "Title",
        filters=[strip_value],
        validators=[DataRequired(message="Title is required."), Length(max=255)],
    )
    description = TextAreaField("Short Description", filters=[strip_value], validators=[Optional()])
    full_description = TextAreaField("Full Description", filters=[strip_value], validators=[Optional()])
    time = StringField("Time", filters=[strip_value], validators=[Optional(), Length(max=100)])
    location = StringField("Location", filters=[strip_value], validators=[Optional(), Length(max=255)])
    venue = StringField("Venue", filters=[strip_value], validators=[Optional(), Length(max=255)])
    image = StringField("Cover Image URL", filters=[strip_value], validators=[Optional(), Length(max=512)])
    logo = StringField("Logo URL", filters=[strip_value], validators=[Optional(), Length(max=512)])
    eligibility = TextAreaField("Eligibility", filters=[strip_value], validators=[Optional()])
    color_theme = StringField(
        "Color Theme",
        filters=[strip_value],
        validators=[Optional(), Regexp(r'^#?[0-9A-Fa-f]{6}$', message="Use a hex colour such as #1d4ed8.")],
    )
    amount = FloatField(
        "Registration Fee",
        validators=[Optional(), NumberRange(min=0, message="Amount cannot be negative.")],
    )
