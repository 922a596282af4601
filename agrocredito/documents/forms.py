"""Document forms"""
from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileAllowed, FileRequired
from wtforms import SelectField
from wtforms.validators import DataRequired
from agrocredito.models import DOCUMENT_TYPES

class DocumentUploadForm(FlaskForm):
    """Document upload form"""
    document = FileField('Document', validators=[
        FileRequired(message='A file is required'),
        FileAllowed(['pdf', 'png', 'jpg', 'jpeg', 'gif'], 'PDF and image files only!')
    ])
    document_type = SelectField('Document Type', choices=[(t, t) for t in DOCUMENT_TYPES], validators=[DataRequired()])
