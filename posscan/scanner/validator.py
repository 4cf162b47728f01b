"""
==============================================================================
JAN Code Validator Module
==============================================================================

Validation of decoded barcode text.

This module implements:
- JANCodeValidator: Format and check digit validation of JAN/EAN codes

Validation Rules for JAN Codes:
------------------------------
- Whitespace around the code is ignored
- Exactly 8 or 13 ASCII digits
- Final digit equals the weighted modulo-10 check digit of the others

==============================================================================
"""

from __future__ import annotations

import re
from typing import Optional

from posscan.core.exceptions import INVALID_CHECKSUM_MESSAGE, INVALID_FORMAT_MESSAGE
from .models import ValidationOutcome, ValidationStatus


class JANCodeValidator:
    """
    Validator for JAN/EAN-8 and JAN/EAN-13 codes.

    The check digit is computed over the body (every digit but the last):
    digits at even 0-based positions are summed with weight 1, digits at
    odd positions with weight 3, and the check digit is
    ``(10 - total % 10) % 10``.

    Example:
        >>> validator = JANCodeValidator()
        >>> validator.validate("4901234567894").is_valid
        True
        >>> validator.validate("12345").status
        <ValidationStatus.INVALID_FORMAT: 'invalid_format'>
    """

    # ASCII digits only; str.isdigit() would also accept other scripts
    PATTERN = re.compile(r"^(?:[0-9]{8}|[0-9]{13})$")

    MESSAGES = {
        ValidationStatus.INVALID_FORMAT: INVALID_FORMAT_MESSAGE,
        ValidationStatus.INVALID_CHECKSUM: INVALID_CHECKSUM_MESSAGE,
    }

    @staticmethod
    def check_digit(body: str) -> int:
        """
        Compute the check digit for a run of body digits.

        Args:
            body: The first N-1 digits of the code

        Returns:
            Check digit in range 0-9
        """
        digits = [int(ch) for ch in body]
        odd_sum = sum(digits[0::2])
        even_sum = sum(digits[1::2])
        return (10 - ((odd_sum + even_sum * 3) % 10)) % 10

    def validate(self, text: str) -> ValidationOutcome:
        """
        Validate decoded text as a JAN code.

        Never raises; non-string input is reported as a format failure.

        Args:
            text: Raw decoded text

        Returns:
            ValidationOutcome tagged VALID, INVALID_FORMAT or INVALID_CHECKSUM
        """
        if not isinstance(text, str):
            return ValidationOutcome.invalid_format()

        code = text.strip()

        if not self.PATTERN.match(code):
            return ValidationOutcome.invalid_format()

        if self.check_digit(code[:-1]) != int(code[-1]):
            return ValidationOutcome.invalid_checksum()

        return ValidationOutcome.valid(code)

    def error_message(self, outcome: ValidationOutcome) -> Optional[str]:
        """User-facing message for a failed outcome, None when valid."""
        return self.MESSAGES.get(outcome.status)


_default_validator = JANCodeValidator()


def validate(text: str) -> ValidationOutcome:
    """Validate ``text`` with the shared JANCodeValidator."""
    return _default_validator.validate(text)
