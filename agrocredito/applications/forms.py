"""Credit application forms"""
from flask_wtf import FlaskForm
from wtforms import StringField, SelectField, DecimalField, IntegerField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, InputRequired, Optional, NumberRange, Length
from agrocredito.models import PROJECT_TYPES

PROJECT_TYPE_CHOICES = [(t, t) for t in PROJECT_TYPES]

class CreditApplicationForm(FlaskForm):
    """Credit application form"""
    credit_program_id = StringField('Credit Program', validators=[Optional(), Length(max=36)])
    project_name = StringField('Project Name', validators=[DataRequired(), Length(max=200)])
    project_type = SelectField('Project Type', choices=PROJECT_TYPE_CHOICES, validators=[DataRequired()])
    description = TextAreaField('Description', validators=[DataRequired()])
    amount = DecimalField('Amount', validators=[InputRequired(), NumberRange(min=1)], places=2)
    term = IntegerField('Term (Months)', validators=[InputRequired(), NumberRange(min=1, max=360)])

    productivity = SelectField('Productivity', choices=[
        ('small', 'Small'),
        ('medium', 'Medium'),
        ('large', 'Large')
    ], validators=[Optional(), AnyOf(['small', 'medium', 'large'])], validate_choice=False)
    agriculture_type = StringField('Agriculture Type', validators=[Optional(), Length(max=100)])
    credit_delivery_method = SelectField('Credit Delivery Method', choices=[
        ('total', 'Total'),
        ('monthly', 'Monthly')
    ], validators=[Optional(), AnyOf(['total', 'monthly'])], validate_choice=False)
    credit_guarantee_declaration = TextAreaField('Guarantee Declaration', validators=[Optional()])

    monthly_income = DecimalField('Monthly Income', validators=[InputRequired(), NumberRange(min=0.01, message='Monthly income must be positive')], places=2)
    expected_project_income = DecimalField('Expected Project Income', validators=[Optional(), NumberRange(min=0)], places=2)
    monthly_expenses = DecimalField('Monthly Expenses', validators=[Optional(), NumberRange(min=0)], places=2)
    other_debts = DecimalField('Other Debts', validators=[Optional(), NumberRange(min=0)], places=2)
    family_members = IntegerField('Family Members', validators=[Optional(), NumberRange(min=0)])
    experience_years = IntegerField('Experience (Years)', validators=[Optional(), NumberRange(min=0)])

class StatusUpdateForm(FlaskForm):
    """Application status transition"""
    status = SelectField('Status', choices=[
        ('under_review', 'Under Review'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected')
    ], validators=[DataRequired()])
    rejection_reason = TextAreaField('Rejection Reason', validators=[Optional(), Length(max=2000)])

class LoanSimulationForm(FlaskForm):
    """Unconstrained payment simulation"""
    amount = DecimalField('Amount', validators=[InputRequired(), NumberRange(min=1)], places=2)
    term = IntegerField('Term (Months)', validators=[InputRequired(), NumberRange(min=1, max=360)])
    interest_rate = DecimalField('Interest Rate (%)', validators=[InputRequired(), NumberRange(min=0, max=100)], places=2)
