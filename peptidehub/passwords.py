"""Password strength rules shared by signup and reset."""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass

MIN_LENGTH = 8
SPECIAL_CHARS = re.compile(r'[!@#$%^&*(),.?":{}|<>]')


@dataclass(frozen=True)
class PasswordValidation:
    has_min_length: bool
    has_number: bool
    has_special_char: bool
    has_upper_case: bool
    has_lower_case: bool

    def failed_checks(self) -> list[str]:
        return [name for name, passed in asdict(self).items() if not passed]


def validate_password(password: str) -> PasswordValidation:
    return PasswordValidation(
        has_min_length=len(password) >= MIN_LENGTH,
        has_number=re.search(r"\d", password) is not None,
        has_special_char=SPECIAL_CHARS.search(password) is not None,
        has_upper_case=re.search(r"[A-Z]", password) is not None,
        has_lower_case=re.search(r"[a-z]", password) is not None,
    )


def is_password_valid(validation: PasswordValidation) -> bool:
    return all(asdict(validation).values())
