"""Authentication forms."""
from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField
from wtforms.validators import DataRequired, Length, Regexp

from academy_admin.forms.admin_forms import EMAIL_PATTERN


class LoginForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired(), Regexp(EMAIL_PATTERN, message='Invalid email'), Length(max=255)])
    password = PasswordField('Password', validators=[DataRequired()])
