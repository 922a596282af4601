"""Credit program forms"""
from flask_wtf import FlaskForm
from wtforms import StringField, DecimalField, IntegerField, TextAreaField, BooleanField, SelectMultipleField
from wtforms.validators import DataRequired, InputRequired, Optional, NumberRange, Length, ValidationError
from agrocredito.models import PROJECT_TYPES

class CreditProgramForm(FlaskForm):
    """Credit program form"""
    name = StringField('Program Name', validators=[DataRequired(), Length(max=200)])
    description = TextAreaField('Description', validators=[Optional()])
    project_types = SelectMultipleField('Project Types', choices=[(t, t) for t in PROJECT_TYPES], validators=[Optional()])
    min_amount = DecimalField('Minimum Amount', validators=[InputRequired(), NumberRange(min=0)], places=2)
    max_amount = DecimalField('Maximum Amount', validators=[InputRequired(), NumberRange(min=0)], places=2)
    min_term = IntegerField('Minimum Term (Months)', validators=[InputRequired(), NumberRange(min=1)])
    max_term = IntegerField('Maximum Term (Months)', validators=[InputRequired(), NumberRange(min=1, max=360)])
    interest_rate = DecimalField('Interest Rate (%)', validators=[InputRequired(), NumberRange(min=0, max=100)], places=2)
    effort_rate = DecimalField('Effort Rate (%)', validators=[InputRequired(), NumberRange(min=1, max=100)], places=2)
    processing_fee = DecimalField('Processing Fee (%)', validators=[Optional(), NumberRange(min=0, max=100)], places=2)
    requirements = SelectMultipleField('Requirements', choices=[], validators=[Optional()], validate_choice=False)
    benefits = SelectMultipleField('Benefits', choices=[], validators=[Optional()], validate_choice=False)
    is_active = BooleanField('Active', default=True)

    def validate_max_amount(self, field):
        if self.min_amount.data is not None and field.data is not None and field.data < self.min_amount.data:
            raise ValidationError('Maximum amount must not be less than the minimum amount')

    def validate_max_term(self, field):
        if self.min_term.data is not None and field.data is not None and field.data < self.min_term.data:
            raise ValidationError('Maximum term must not be less than the minimum term')
