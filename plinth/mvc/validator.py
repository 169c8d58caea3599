"""
Form validation.

Validates request values: query string values for GET requests, form values
for POST requests. Filters run first and their output is what the validators
see and what :meth:`Validator.get_value` returns::

    validator = Validator(self.request)
    validator.add_filter({"field": "email", "filters": ["trim", "lower"]})
    validator.add_validator({"field": "email", "required": True, "email": True})
    validator.add_validator({"field": "first-name", "string": True, "max_length": 40})
    if not validator.is_valid():
        self.view.errors = validator.get_errors()
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from plinth.errors import ValidationSpecError
from plinth.mvc.request import Request

EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)
STRING_PATTERN = re.compile(r"^[^\W\d_]+(?:[ '\-][^\W\d_]+)*$")
TAG_PATTERN = re.compile(r"<[^>]*>")

FILTERS: Dict[str, Callable[[str], str]] = {
    "trim": str.strip,
    "lower": str.lower,
    "upper": str.upper,
    "strip_tags": lambda value: TAG_PATTERN.sub("", value),
}


def format_field_name(name: str) -> str:
    """``first-name`` -> ``First name``."""
    text = name.replace("-", " ")
    return text[:1].upper() + text[1:]


class Validator:
    """Validate the values of one request against field specs."""

    def __init__(self, request: Request) -> None:
        self.request = request
        self.validators: List[Dict[str, Any]] = []
        self.filters: List[Dict[str, Any]] = []
        self.errors: Dict[str, str] = {}
        self.values: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Specs
    # ------------------------------------------------------------------

    @staticmethod
    def _check_spec(spec: Mapping[str, Any], kind: str) -> Dict[str, Any]:
        if not isinstance(spec, Mapping) or "field" not in spec:
            raise ValidationSpecError(f"The {kind} spec must contain a form field name with key 'field'")
        return dict(spec)

    def add_validator(self, validator: Mapping[str, Any]) -> "Validator":
        self.validators.append(self._check_spec(validator, "validator"))
        return self

    def set_validators(self, validators: List[Mapping[str, Any]]) -> "Validator":
        self.validators = [self._check_spec(v, "validator") for v in validators]
        return self

    def add_filter(self, filter_spec: Mapping[str, Any]) -> "Validator":
        self._check_filter_names(filter_spec)
        self.filters.append(self._check_spec(filter_spec, "filter"))
        return self

    def set_filters(self, filters: List[Mapping[str, Any]]) -> "Validator":
        for filter_spec in filters:
            self._check_filter_names(filter_spec)
        self.filters = [self._check_spec(f, "filter") for f in filters]
        return self

    @staticmethod
    def _check_filter_names(filter_spec: Mapping[str, Any]) -> None:
        for name in filter_spec.get("filters", []) if isinstance(filter_spec, Mapping) else []:
            if name not in FILTERS:
                raise ValidationSpecError(f"Unknown filter '{name}'")

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def _field_value(self, field: str) -> Any:
        if field in self.values:
            return self.values[field]
        if self.request.is_post():
            return self.request.get_post(field)
        return self.request.get_get(field)

    def is_valid(self) -> bool:
        self.errors = {}
        self.values = {}
        self._run_filters()
        self._run_validators()
        return not self.errors

    def _run_filters(self) -> None:
        for spec in self.filters:
            field = spec["field"]
            value = self._field_value(field)
            if isinstance(value, str):
                for name in spec.get("filters", []):
                    value = FILTERS[name](value)
            self.values[field] = value

    def _run_validators(self) -> None:
        for spec in self.validators:
            field = spec["field"]
            value = self._field_value(field)
            self.values.setdefault(field, value)
            if field in self.errors:
                continue
            message = self._first_error(spec, value)
            if message:
                self.errors[field] = spec.get("message", message)

    def _first_error(self, spec: Mapping[str, Any], value: Any) -> Optional[str]:
        name = format_field_name(spec["field"])
        text = "" if value is None else str(value)

        if spec.get("required") and not text.strip():
            return f"{name} is required"
        if not text:
            return None
        if spec.get("string") and not STRING_PATTERN.match(text):
            return f"{name} must only contain letters"
        if spec.get("email") and not EMAIL_PATTERN.match(text):
            return f"{name} must be a valid email address"
        min_length = spec.get("min_length")
        if min_length is not None and len(text) < int(min_length):
            return f"{name} must be at least {min_length} characters long"
        max_length = spec.get("max_length")
        if max_length is not None and len(text) > int(max_length):
            return f"{name} must be at most {max_length} characters long"
        pattern = spec.get("pattern")
        if pattern is not None and not re.search(pattern, text):
            return f"{name} is not in the expected format"
        return None

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def get_errors(self) -> Optional[Dict[str, str]]:
        return dict(self.errors) if self.errors else None

    def get_error(self, field: str) -> Optional[str]:
        return self.errors.get(field)

    def get_value(self, field: str) -> Any:
        """Filtered value of ``field``."""
        return self._field_value(field)
