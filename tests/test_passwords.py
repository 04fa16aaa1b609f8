from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from peptidehub.passwords import is_password_valid, validate_password


def test_strong_password_passes_every_check():
    validation = validate_password("Peptide#2024")
    assert is_password_valid(validation)
    assert validation.failed_checks() == []


@pytest.mark.parametrize(
    "password, failed",
    [
        ("Ab1!", "has_min_length"),
        ("Abcdefg!", "has_number"),
        ("Abcdefg1", "has_special_char"),
        ("abcdefg1!", "has_upper_case"),
        ("ABCDEFG1!", "has_lower_case"),
    ],
)
def test_each_rule_is_reported(password, failed):
    validation = validate_password(password)
    assert not is_password_valid(validation)
    assert validation.failed_checks() == [failed]


def test_empty_password_fails_everything():
    assert len(validate_password("").failed_checks()) == 5
