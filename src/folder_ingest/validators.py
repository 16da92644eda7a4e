"""
Validation functions for field values and ingestion schemas.
"""

import re
from collections import Counter
from functools import lru_cache
from typing import List, Optional, Union

from folder_ingest.casting import matches_type
from folder_ingest.exceptions import ErrorCode, RecordValidationError
from folder_ingest.models import CsvSchema, FieldRule, XmlSchema


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> "re.Pattern[str]":
    """Compile and cache a field pattern; the same rule runs once per record."""
    return re.compile(pattern)


def validate_field_value(rule: FieldRule, raw: Optional[str], line: int) -> Optional[str]:
    """Validate one raw value against its field rule.

    Checks run in a fixed order: blank/required, blank/nullable, type, pattern.

    Returns:
        The trimmed value, or None for an accepted blank

    Raises:
        RecordValidationError: On the first failed check
    """
    blank = raw is None or raw.strip() == ''

    if blank:
        if rule.required:
            raise RecordValidationError(
                ErrorCode.REQUIRED_FIELD_MISSING, rule.name, line,
                f"Required field '{rule.name}' is missing/empty"
            )
        if not rule.nullable:
            raise RecordValidationError(
                ErrorCode.NULL_NOT_ALLOWED, rule.name, line,
                f"Field '{rule.name}' cannot be null/empty"
            )
        return None

    value = raw.strip()

    if not matches_type(rule.type, value):
        raise RecordValidationError(
            ErrorCode.TYPE_MISMATCH, rule.name, line,
            f"Type mismatch for '{rule.name}': expected {rule.type}"
        )

    if rule.pattern and rule.pattern.strip():
        if not compile_pattern(rule.pattern).fullmatch(value):
            raise RecordValidationError(
                ErrorCode.PATTERN_MISMATCH, rule.name, line,
                f"Field '{rule.name}' does not match pattern"
            )

    return value


def validate_schema(schema: Union[CsvSchema, XmlSchema]) -> List[str]:
    """Validate schema structure.

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    names = [f.name for f in schema.fields]
    if not names:
        errors.append("Schema has no fields")

    counts = Counter(names)
    duplicates = [name for name, count in counts.items() if count > 1]
    if duplicates:
        errors.append(f"Duplicate field names: {', '.join(sorted(duplicates))}")

    known = set(names)
    for dup_field in schema.duplicate_check:
        if dup_field not in known:
            errors.append(f"Duplicate-check field '{dup_field}' is not a schema field")

    if isinstance(schema, CsvSchema):
        if len(schema.delimiter or '') != 1:
            errors.append(f"CSV delimiter must be a single character, got '{schema.delimiter}'")
        for fld in schema.fields:
            if schema.has_header and fld.required and not (fld.header and fld.header.strip()):
                errors.append(f"CSV mapping error: required column has no 'header' value: {fld.name}")
    else:
        if not schema.root_element:
            errors.append("XML mapping needs a 'root_element'")
        if not schema.record_element:
            errors.append("XML mapping needs a 'record_element'")
        for fld in schema.fields:
            if not fld.tag:
                errors.append(f"XML field '{fld.name}' has no 'tag'")

    for fld in schema.fields:
        if fld.pattern:
            try:
                compile_pattern(fld.pattern)
            except re.error as e:
                errors.append(f"Field '{fld.name}': invalid regex pattern '{fld.pattern}': {e}")

    return errors
