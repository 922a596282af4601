"""Authentication forms"""
from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SelectField
from wtforms.validators import DataRequired, Email, Optional, Length, Regexp

PHONE_PATTERN = r'^\+244\d{9}$'
BI_PATTERN = r'^\d{9}[A-Z]{2}\d{3}$'

class LoginForm(FlaskForm):
    """Login form"""
    login_identifier = StringField('Phone or Email', validators=[DataRequired(), Length(max=120)])
    password = PasswordField('Password', validators=[DataRequired()])

class RegistrationForm(FlaskForm):
    """Public self-registration form"""
    full_name = StringField('Full Name', validators=[DataRequired(), Length(min=3, max=200)])
    bi = StringField('BI', validators=[
        DataRequired(),
        Regexp(BI_PATTERN, message='BI must look like 000000000LA000')
    ])
    nif = StringField('NIF', validators=[Optional(), Length(max=20)])
    phone = StringField('Phone', validators=[
        DataRequired(),
        Regexp(PHONE_PATTERN, message='Phone must look like +244XXXXXXXXX')
    ])
    email = StringField('Email', validators=[Optional(), Email(), Length(max=120)])
    password = PasswordField('Password', validators=[
        DataRequired(),
        Length(min=6, message='Password must be at least 6 characters long')
    ])
    user_type = SelectField('User Type', choices=[
        ('farmer', 'Farmer'),
        ('company', 'Agricultural Company'),
        ('cooperative', 'Cooperative'),
        ('financial_institution', 'Financial Institution')
    ], validators=[DataRequired()])
