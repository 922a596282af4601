"""Account forms"""
from flask_wtf import FlaskForm
from wtforms import DecimalField
from wtforms.validators import InputRequired

class PaymentForm(FlaskForm):
    """Payment form; positivity is checked by the ledger"""
    amount = DecimalField('Payment Amount', validators=[InputRequired()], places=2)
