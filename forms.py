from flask_wtf import FlaskForm
from wtforms import SelectField, HiddenField, SubmitField
from wtforms.validators import DataRequired, ValidationError # Import standard validators.
from utils.accessibility import CONTRAST_MODES, CURSOR_SIZES

# (value, label) pairs for the action field; values match the JSON API's <action> segment.
ACCESSIBILITY_ACTION_CHOICES = [
    ('increase-font', 'Increase Font'),
    ('decrease-font', 'Decrease Font'),
    ('contrast', 'Contrast'),
    ('cursor', 'Cursor'),
    ('toggle-links', 'Highlight Links'),
    ('toggle-readable-font', 'Readable Font'),
    ('toggle-animations', 'Stop Animations'),
    ('toggle-headings', 'Highlight Headings'),
    ('reset', 'Reset Settings'),
]


class AccessibilityActionForm(FlaskForm):
    """
    Form behind each button of the server-rendered accessibility panel.
    Every button posts one action; 'contrast' and 'cursor' also post the chosen value.
    """
    # Action field: must be one of the widget actions.
    action = SelectField('Action', choices=ACCESSIBILITY_ACTION_CHOICES,
                         validators=[DataRequired(message="Choose an accessibility action.")])
    # Value field: only meaningful for 'contrast' and 'cursor'.
    value = HiddenField('Value')
    # Path to return to after the action is applied (the page the panel was opened from).
    next = HiddenField('Next')
    submit = SubmitField('Apply')

    def validate_value(self, value):
        """
        Custom validator for the value field.
        Checks the value against the allowed modes for actions that take one.

        Raises:
            ValidationError: If the contrast mode or cursor size is not supported.
        """
        if self.action.data == 'contrast' and value.data not in CONTRAST_MODES:
            raise ValidationError(f"Contrast must be one of: {', '.join(CONTRAST_MODES)}.")
        if self.action.data == 'cursor' and value.data not in CURSOR_SIZES:
            raise ValidationError(f"Cursor must be one of: {', '.join(CURSOR_SIZES)}.")
