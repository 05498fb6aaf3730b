from flask_wtf import FlaskForm
from wtforms import fields, PasswordField, SelectField, DateTimeField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, NumberRange, Optional, StopValidation, ValidationError

from mirin.models.catalog import Product, Order

DATETIME_FORMATS = [
    '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M', '%Y-%m-%dT%H:%M:%S.%fZ', '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%d %H:%M:%S', '%Y-%m-%d %H:%M',
]


def _choices(values):
    return [(value, value) for value in values]


# --- JSON-aware fields ---
# JSON bodies can carry null, numbers, objects and lists where a form post
# only ever carries strings; wrong types become field errors.
class StringField(fields.StringField):
    def process_formdata(self, valuelist):
        if valuelist and valuelist[0] is not None and not isinstance(valuelist[0], str):
            self.data = None
            raise ValueError(self.gettext('Not a valid string value.'))
        super().process_formdata(valuelist)


class _NumberInput:
    def process_formdata(self, valuelist):
        if valuelist and valuelist[0] is None:
            self.data = None
            return
        if valuelist and isinstance(valuelist[0], (bool, dict, list)):
            self.data = None
            raise ValueError(self.gettext('Not a valid number.'))
        super().process_formdata(valuelist)


class FloatField(_NumberInput, fields.FloatField):
    pass


class IntegerField(_NumberInput, fields.IntegerField):
    pass


class Nullable(Optional):
    """Optional that also treats a JSON null as 'no value'."""

    def __call__(self, form, field):
        if field.raw_data and field.raw_data[0] is None:
            field.errors[:] = []
            raise StopValidation()
        super().__call__(form, field)


class NotBlank:
    """Lets an absent field through but refuses one sent empty or null."""

    def __init__(self, message='This field cannot be empty.'):
        self.message = message

    def __call__(self, form, field):
        if not field.raw_data:
            raise StopValidation()
        value = field.raw_data[0]
        if value is None or (isinstance(value, str) and not value.strip()):
            field.errors[:] = []
            raise StopValidation(self.message)


# --- Auth ---
class RegistrationForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired(), Length(min=3, max=50)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6)])
    name = StringField('Name', validators=[Optional(), Length(max=150)])
    email = StringField('Email', validators=[Optional(), Email()])


class LoginForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])


# --- Catalog ---
class ProductForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=150)])
    category = SelectField('Category', choices=_choices(Product.CATEGORIES), validators=[DataRequired()])
    license_plate = StringField('License plate', validators=[Nullable(), Length(max=30)])
    hourly_rate = FloatField('Hourly rate', validators=[Nullable(), NumberRange(min=0)])
    daily_rate = FloatField('Daily rate', validators=[DataRequired(), NumberRange(min=0)])
    description = TextAreaField('Description', validators=[Optional()])
    image_url = StringField('Image URL', validators=[Optional(), Length(max=255)])


class ProductUpdateForm(FlaskForm):
    """Partial update: absent fields are left alone, required columns cannot be blanked."""
    name = StringField('Name', validators=[NotBlank(), Length(max=150)])
    category = SelectField('Category', choices=_choices(Product.CATEGORIES), validators=[NotBlank()],
                           validate_choice=False)
    license_plate = StringField('License plate', validators=[Nullable(), Length(max=30)])
    hourly_rate = FloatField('Hourly rate', validators=[Nullable(), NumberRange(min=0)])
    daily_rate = FloatField('Daily rate', validators=[NotBlank(), NumberRange(min=0)])
    description = TextAreaField('Description', validators=[Nullable()])
    image_url = StringField('Image URL', validators=[Nullable(), Length(max=255)])
    status = SelectField('Status', choices=_choices(Product.STATUSES), validators=[NotBlank()],
                         validate_choice=False)

    def validate_category(self, field):
        if field.data and field.data not in Product.CATEGORIES:
            raise ValidationError('Not a valid category.')

    def validate_status(self, field):
        if field.data and field.data not in Product.STATUSES:
            raise ValidationError('Not a valid status.')


# --- Rentals & payments ---
class RentalForm(FlaskForm):
    product_id = IntegerField('Product', validators=[DataRequired()])
    start_date = DateTimeField('Start', format=DATETIME_FORMATS, validators=[DataRequired()])
    end_date = DateTimeField('End', format=DATETIME_FORMATS, validators=[DataRequired()])
    location = StringField('Location', validators=[Optional(), Length(max=255)])

    def validate_end_date(self, field):
        if self.start_date.data and field.data and field.data <= self.start_date.data:
            raise ValidationError('End date must be after start date.')


class ExtendRentalForm(FlaskForm):
    days = IntegerField('Days', validators=[DataRequired(), NumberRange(min=1)])


class TopUpForm(FlaskForm):
    amount = FloatField('Amount', validators=[DataRequired(), NumberRange(min=1)])


# --- Identity ---
class IdCardForm(FlaskForm):
    id_number = StringField('ID number', validators=[DataRequired(), Length(max=50)])
    full_name = StringField('Full name', validators=[DataRequired(), Length(max=150)])
    date_of_birth = StringField('Date of birth', validators=[DataRequired(), Length(max=20)])
    image = StringField('Image (base64)', validators=[DataRequired()])


class VerifyIdCardForm(FlaskForm):
    status = SelectField('Status', choices=_choices(('verified', 'rejected')), validators=[DataRequired()])
    notes = TextAreaField('Notes', validators=[Optional()])


class PushTokenForm(FlaskForm):
    # A web push subscription arrives as a JSON object
    token = fields.StringField('Subscription', validators=[DataRequired()])
    platform = SelectField('Platform', choices=_choices(('ios', 'android', 'web')), validators=[DataRequired()])


# --- Admin ---
class SettingForm(FlaskForm):
    key = StringField('Key', validators=[DataRequired(), Length(max=64)])
    value = StringField('Value', validators=[DataRequired()])
    description = TextAreaField('Description', validators=[Optional()])


class OrderStatusForm(FlaskForm):
    status = SelectField('Status', choices=_choices(Order.STATUSES), validators=[DataRequired()])
