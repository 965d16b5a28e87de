"""Account forms: sign-up, login, profile and administrator creation."""

from __future__ import annotations

from wtforms import Form, PasswordField, StringField
from wtforms.validators import DataRequired, EqualTo, Length, Optional, Regexp

from eventdesk.forms.registration import EMAIL_PATTERN, strip_value


class SignupForm(Form):
    email = StringField(
        "Email",
        filters=[strip_value],
        validators=[DataRequired(message="Email is required."), Regexp(EMAIL_PATTERN, message="Please enter a valid email address.")],
    )
    password = PasswordField(
        "Password",
        validators=[DataRequired(message="Password is required."), Length(min=6, message="Password must be at least 6 characters.")],
    )
    display_name = StringField("Name", filters=[strip_value], validators=[Optional(), Length(max=255)])


class LoginForm(Form):
    email = StringField("Email", filters=[strip_value], validators=[DataRequired(message="Email is required.")])
    password = PasswordField("Password", validators=[DataRequired(message="Password is required.")])


class ProfileForm(Form):
    display_name = StringField("Name", filters=[strip_value], validators=[Optional(), Length(max=255)])
    phone = StringField("Phone", filters=[strip_value], validators=[Optional(), Length(max=32)])
    school = StringField("School", filters=[strip_value], validators=[Optional(), Length(max=255)])


class PasswordChangeForm(Form):
    current_password = PasswordField("Current Password", validators=[DataRequired(message="Current password is required.")])
    new_password = PasswordField(
        "New Password",
        validators=[DataRequired(message="New password is required."), Length(min=6, message="Password must be at least 6 characters.")],
    )
    confirm_password = PasswordField(
        "Confirm Password",
        validators=[Optional(), EqualTo('new_password', message="Passwords must match.")],
    )


class AdministratorForm(SignupForm):
    """Super-admin creation of an administrator account."""
