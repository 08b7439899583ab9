from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Regexp


class WithdrawalForm(FlaskForm):
    # satang
    amount = IntegerField("Amount", validators=[DataRequired(), NumberRange(min=1)])
    bank_name = StringField("Bank", validators=[DataRequired(), Length(max=120)])
    account_name = StringField("Account name", validators=[DataRequired(), Length(max=120)])
    account_number = StringField(
        "Account number",
        validators=[DataRequired(), Regexp(r"^[\d\s-]{10,20}$", message="Account number must be 10-15 digits.")],
    )


class ConfirmCodeForm(FlaskForm):
    code = StringField("Confirmation code", validators=[DataRequired(), Length(6, 6)])
