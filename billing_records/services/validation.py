"""
Subscription validation rules.

`validate()` is a pure function: it takes a plain mapping of attribute
values and returns field -> messages. Each rule only looks at the fields
it owns, so rules can be tested and reasoned about one at a time.
"""
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from dateutil import parser as date_parser

ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
BILLING_DAYS = frozenset(list(range(1, 29)) + [31])
TRIAL_DURATION_RANGE = (1, 9999)
TRIAL_DURATION_UNITS = ("day", "month")

Errors = Dict[str, List[str]]
Rule = Callable[[Mapping[str, Any], bool, date], List[Tuple[str, str]]]


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def parse_number(value: Any) -> Optional[Decimal]:
    """Return value as a finite Decimal, or None when it is not numeric"""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    return number if number.is_finite() else None


def parse_integer(value: Any) -> Optional[int]:
    """Return value as an int, or None when it is not a whole number"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        return int(value) if INTEGER_PATTERN.match(value) else None
    return None


def parse_date(value: Any) -> date:
    """
    Coerce a date, datetime or date string into a date.
    
    Raises:
        ValueError: the value is not a date and cannot be parsed as one
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date_parser.parse(value).date()
        except OverflowError as e:
            raise ValueError(f"date out of range: {value}") from e
    raise ValueError(f"not a date: {value!r}")


def validate_id(attributes, new_record, today):
    value = attributes.get("id")
    if is_blank(value):
        return []
    if not ID_PATTERN.match(str(value)):
        return [("id", "is invalid")]
    return []


def validate_billing_day_of_month(attributes, new_record, today):
    value = attributes.get("billing_day_of_month")
    if is_blank(value):
        return []
    day = parse_integer(value)
    if day is None:
        return [("billing_day_of_month", "must be an integer")]
    if day not in BILLING_DAYS:
        return [("billing_day_of_month", "must be between 1 and 28, or 31")]
    return []


def validate_number_of_billing_cycles(attributes, new_record, today):
    value = attributes.get("number_of_billing_cycles")
    if is_blank(value):
        return []
    if parse_number(value) is None:
        return [("number_of_billing_cycles", "is not a number")]
    cycles = parse_integer(value)
    if cycles is None:
        return [("number_of_billing_cycles", "must be an integer")]
    current = parse_integer(attributes.get("current_billing_cycle"))
    if current is not None and cycles <= current:
        return [("number_of_billing_cycles", "must be greater than current billing cycle")]
    return []


def validate_payment_method_token(attributes, new_record, today):
    if new_record and is_blank(attributes.get("payment_method_token")):
        return [("payment_method_token", "can't be blank")]
    return []


def validate_plan_id(attributes, new_record, today):
    if new_record and is_blank(attributes.get("plan_id")):
        return [("plan_id", "can't be blank")]
    return []


def validate_price(attributes, new_record, today):
    value = attributes.get("price")
    if is_blank(value):
        return []
    if parse_number(value) is None:
        return [("price", "is not a number")]
    return []


def validate_trial_duration(attributes, new_record, today):
    if not is_truthy(attributes.get("trial_period")):
        return []
    value = attributes.get("trial_duration")
    if is_blank(value):
        return [("trial_duration", "can't be blank")]
    if parse_number(value) is None:
        return [("trial_duration", "is not a number")]
    duration = parse_integer(value)
    if duration is None:
        return [("trial_duration", "must be an integer")]
    low, high = TRIAL_DURATION_RANGE
    if not low <= duration <= high:
        return [("trial_duration", f"must be between {low} and {high}")]
    return []


def validate_trial_duration_unit(attributes, new_record, today):
    if not is_truthy(attributes.get("trial_period")):
        return []
    value = attributes.get("trial_duration_unit")
    if is_blank(value):
        return [("trial_duration_unit", "can't be blank")]
    if value not in TRIAL_DURATION_UNITS:
        return [("trial_duration_unit", "is not included in the list")]
    return []


def validate_first_billing_date(attributes, new_record, today):
    # The gateway only accepts a first billing date when the subscription is created
    value = attributes.get("first_billing_date")
    if not new_record or is_blank(value):
        return []
    try:
        first_billing_date = parse_date(value)
    except ValueError:
        return [("first_billing_date", "is not a valid date")]
    if first_billing_date < today:
        return [("first_billing_date", "must be on or after today")]
    return []


RULES: Tuple[Rule, ...] = (
    validate_id,
    validate_billing_day_of_month,
    validate_number_of_billing_cycles,
    validate_payment_method_token,
    validate_plan_id,
    validate_price,
    validate_trial_duration,
    validate_trial_duration_unit,
    validate_first_billing_date,
)


def validate(
    attributes: Mapping[str, Any],
    new_record: bool,
    today: Optional[date] = None
) -> Errors:
    """
    Run every subscription rule against the given attribute values.
    
    Args:
        attributes: Attribute name -> raw value, as supplied by the caller
        new_record: Whether the subscription has not been created remotely yet
        today: Reference date for the first billing date check
    
    Returns:
        Field name -> list of messages, only for fields that failed
    """
    today = today or date.today()
    errors: Errors = {}
    for rule in RULES:
        for field, message in rule(attributes, new_record, today):
            errors.setdefault(field, []).append(message)
    return errors
