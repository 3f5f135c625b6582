"""
Admin forms for tenant provisioning and subscription management.

Accept JSON bodies as well as form posts (Flask-WTF wraps JSON as formdata).
"""
from flask_wtf import FlaskForm
from wtforms import DateField, IntegerField, PasswordField, SelectField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp

TENANT_STATUS_CHOICES = [('active', 'Active'), ('trial', 'Trial'), ('suspended', 'Suspended')]
SUBSCRIPTION_STATUS_CHOICES = [('active', 'Active'), ('expired', 'Expired')]
EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


class TenantCreateForm(FlaskForm):
    """Form for provisioning a new tenant."""

    name = StringField('Academy name', validators=[DataRequired(message='Name is required'), Length(max=200)])

    subdomain = StringField(
        'Subdomain',
        validators=[
            DataRequired(message='Subdomain is required'),
            Length(min=3, max=63, message='Subdomain must be 3-63 characters'),
            Regexp(r'^[a-z0-9-]+$', message='Subdomain must contain only lowercase letters, numbers, and hyphens'),
        ],
        filters=[lambda value: value.strip().lower() if value else value],
    )

    plan_code = StringField('Plan', validators=[DataRequired(message='Plan is required')], default='single')

    status = SelectField('Status', choices=TENANT_STATUS_CHOICES, default='active')

    starts_at = DateField('Starts at', validators=[Optional()], format='%Y-%m-%d')
    renews_at = DateField('Renews at', validators=[Optional()], format='%Y-%m-%d')

    grace_days = IntegerField(
        'Grace days',
        validators=[Optional(), NumberRange(min=0, message='Grace days must be zero or more')],
        default=7
    )

    admin_email = StringField('Admin email', validators=[Optional(), Regexp(EMAIL_PATTERN, message='Invalid email'), Length(max=255)])
    admin_password = PasswordField('Admin password', validators=[Optional(), Length(min=6)])
    admin_full_name = StringField('Admin name', validators=[Optional(), Length(max=200)])


class TenantStatusForm(FlaskForm):
    status = SelectField('Status', choices=TENANT_STATUS_CHOICES, validators=[DataRequired()])


class SubscriptionUpdateForm(FlaskForm):
    """Form for editing a tenant's current subscription; blank fields are left unchanged."""

    plan_code = StringField('Plan', validators=[Optional(), Length(max=50)])
    renews_at = DateField('Renews at', validators=[Optional()], format='%Y-%m-%d')
    grace_days = IntegerField('Grace days', validators=[Optional(), NumberRange(min=0)])
    status = SelectField('Status', choices=[('', '-')] + SUBSCRIPTION_STATUS_CHOICES, validators=[Optional()])
    extend_days = IntegerField('Extend by days', validators=[Optional(), NumberRange(min=1, max=3650)])

