"""Notification forms"""
from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Optional, Length

class NotificationForm(FlaskForm):
    """Manual notification to a single user"""
    user_id = StringField('Recipient', validators=[DataRequired(), Length(max=36)])
    type = StringField('Type', validators=[DataRequired(), Length(max=50)])
    title = StringField('Title', validators=[DataRequired(), Length(max=200)])
    message = TextAreaField('Message', validators=[DataRequired()])
    related_id = StringField('Related Entity', validators=[Optional(), Length(max=36)])
