"""Settings forms"""
from flask_wtf import FlaskForm
from wtforms import StringField, SelectField, TextAreaField, BooleanField, PasswordField, SelectMultipleField
from wtforms.validators import DataRequired, Email, Optional, Length, Regexp
from agrocredito.auth.forms import BI_PATTERN, PHONE_PATTERN
from agrocredito.models import USER_TYPES

class UserForm(FlaskForm):
    """User creation form"""
    full_name = StringField('Full Name', validators=[DataRequired(), Length(min=3, max=200)])
    bi = StringField('BI', validators=[DataRequired(), Regexp(BI_PATTERN, message='BI must look like 000000000LA000')])
    nif = StringField('NIF', validators=[Optional(), Length(max=20)])
    phone = StringField('Phone', validators=[DataRequired(), Regexp(PHONE_PATTERN, message='Phone must look like +244XXXXXXXXX')])
    email = StringField('Email', validators=[Optional(), Email(), Length(max=120)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6)])
    user_type = SelectField('User Type', choices=[(t, t) for t in USER_TYPES], validators=[DataRequired()])
    profile_id = StringField('Profile', validators=[Optional(), Length(max=36)])
    parent_institution_id = StringField('Parent Institution', validators=[Optional(), Length(max=36)])

class UserEditForm(FlaskForm):
    """User edit form; omitted fields are left unchanged"""
    full_name = StringField('Full Name', validators=[Optional(), Length(min=3, max=200)])
    nif = StringField('NIF', validators=[Optional(), Length(max=20)])
    phone = StringField('Phone', validators=[Optional(), Regexp(PHONE_PATTERN, message='Phone must look like +244XXXXXXXXX')])
    email = StringField('Email', validators=[Optional(), Email(), Length(max=120)])
    password = PasswordField('New Password', validators=[Optional(), Length(min=6)])
    is_active = BooleanField('Active')

class InternalUserForm(FlaskForm):
    """Institution staff member form"""
    full_name = StringField('Full Name', validators=[DataRequired(), Length(min=3, max=200)])
    bi = StringField('BI', validators=[DataRequired(), Regexp(BI_PATTERN, message='BI must look like 000000000LA000')])
    nif = StringField('NIF', validators=[Optional(), Length(max=20)])
    phone = StringField('Phone', validators=[DataRequired(), Regexp(PHONE_PATTERN, message='Phone must look like +244XXXXXXXXX')])
    email = StringField('Email', validators=[Optional(), Email(), Length(max=120)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6)])
    profile_id = StringField('Profile', validators=[Optional(), Length(max=36)])

class AssignProfileForm(FlaskForm):
    """Profile assignment"""
    profile_id = StringField('Profile', validators=[DataRequired(), Length(max=36)])

class ProfileForm(FlaskForm):
    """Profile form"""
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    description = TextAreaField('Description', validators=[Optional()])
    is_active = BooleanField('Active', default=True)
    permission_ids = SelectMultipleField('Permissions', choices=[], validators=[Optional()], validate_choice=False)

class ProfilePermissionsForm(FlaskForm):
    """Permissions to grant to a profile"""
    permission_ids = SelectMultipleField('Permissions', choices=[], validators=[DataRequired()], validate_choice=False)
