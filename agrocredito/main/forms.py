"""Public simulator form"""
from flask_wtf import FlaskForm
from wtforms import StringField, SelectField, DecimalField, IntegerField
from wtforms.validators import AnyOf, InputRequired, Optional, NumberRange, Length
from agrocredito.models import PROJECT_TYPES

class CreditSimulationForm(FlaskForm):
    """Credit simulation with an effort-rate ceiling"""
    amount = DecimalField('Amount', validators=[InputRequired(), NumberRange(min=1)], places=2)
    term = IntegerField('Term (Months)', validators=[InputRequired(), NumberRange(min=1, max=360)])
    monthly_income = DecimalField('Monthly Income', validators=[InputRequired(), NumberRange(min=0.01, message='Monthly income must be positive')], places=2)
    project_type = SelectField('Project Type', choices=[(t, t) for t in PROJECT_TYPES],
                               validators=[Optional(), AnyOf(PROJECT_TYPES)], validate_choice=False)
    credit_program_id = StringField('Credit Program', validators=[Optional(), Length(max=36)])
