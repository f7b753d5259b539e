# events/registration_fields.py
"""
Organizer-defined registration forms.

An event's ``form_fields`` is a list of descriptors::

    {"id": "tshirt", "type": "select", "label": "T-shirt size",
     "required": true, "options": ["S", "M", {"label": "Large", "value": "L"}],
     "validation": {"maxLength": 40}}

Answers arrive as ``{field_id: value}``. Checks are generic over the
descriptor; no field is special-cased by name.
"""
import logging
import math
import re

FIELD_TYPES = {
    "text", "email", "phone", "textarea", "select", "checkbox",
    "radio", "number", "date", "skills", "file",
}

CHOICE_TYPES = {"select", "radio", "checkbox"}

logger = logging.getLogger('findmyevent.events')


def _option_values(field):
    values = []
    for option in field.get("options") or []:
        if isinstance(option, dict):
            values.append(str(option.get("value", option.get("label", ""))))
        else:
            values.append(str(option))
    return values


def _is_blank(value):
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _as_number(value):
    """Numbers often arrive as strings from forms. None when not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def _check_validation(field, value):
    rules = field.get("validation") or {}
    label = field.get("label") or field.get("id")

    if isinstance(value, str):
        min_length = rules.get("minLength")
        max_length = rules.get("maxLength")
        pattern = rules.get("pattern")
        if min_length and len(value) < min_length:
            return f"{label} must be at least {min_length} characters"
        if max_length and len(value) > max_length:
            return f"{label} must be at most {max_length} characters"
        if pattern:
            try:
                matched = re.search(pattern, value)
            except re.error as exc:
                # Misconfigured by the organizer; the rule is skipped
                logger.warning("Form field %s has an invalid pattern %r: %s", field.get("id"), pattern, exc)
            else:
                if not matched:
                    return f"{label} format is invalid"

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        minimum = rules.get("min")
        maximum = rules.get("max")
        if minimum is not None and value < minimum:
            return f"{label} must be at least {minimum}"
        if maximum is not None and value > maximum:
            return f"{label} must be at most {maximum}"

    return None


def validate_form_responses(form_fields, responses):
    """
    Return ``{field_id: message}`` for every problem found (empty when the
    answers are acceptable). Answers for unknown field ids are ignored.
    """
    responses = responses or {}
    errors = {}

    for field in form_fields or []:
        field_id = field.get("id")
        if not field_id:
            continue

        value = responses.get(field_id)
        label = field.get("label") or field_id

        if _is_blank(value):
            if field.get("required"):
                errors[field_id] = f"{label} is required"
            continue

        if field.get("type") in CHOICE_TYPES and field.get("options"):
            allowed = _option_values(field)
            chosen = value if isinstance(value, (list, tuple)) else [value]
            if any(str(v) not in allowed for v in chosen):
                errors[field_id] = f"{label} has an invalid choice"
                continue

        if field.get("type") == "number":
            value = _as_number(value)
            if value is None:
                errors[field_id] = f"{label} must be a number"
                continue

        message = _check_validation(field, value)
        if message:
            errors[field_id] = message

    return errors


def clean_form_responses(form_fields, responses):
    """Keep only answers for fields the event actually defines."""
    known = {f.get("id") for f in form_fields or [] if f.get("id")}
    return {key: value for key, value in (responses or {}).items() if key in known}
