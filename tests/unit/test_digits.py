from __future__ import annotations

import math

import pytest

from ticket_recon.core.digits import (
    ERP_POLICY,
    RETURN_POLICY,
    TrimPolicy,
    barcode_value,
    normalize_barcode_to7,
    to_digits_string,
    to_number,
    trim_leading_digits,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        (1000100, "1000100"),
        (1000100.9, "1000100"),
        (-42.7, "42"),
        ("3.50801165E8", "350801165"),
        ("09-123 456", "09123456"),
        ("", ""),
        (None, ""),
        (float("nan"), ""),
        (math.inf, ""),
        (True, ""),
        ("no digits", ""),
    ],
)
def test_to_digits_string(value, expected):
    assert to_digits_string(value) == expected


def test_to_number_keeps_sign_and_rejects_garbage():
    assert to_number("1,000,050") == 1000050
    assert to_number("-15") == -15
    assert to_number(12.9) == 12
    assert to_number("-") is None
    assert to_number("") is None
    assert to_number(None) is None


def test_trim_leading_digits():
    assert trim_leading_digits("991234567", 2) == "1234567"
    assert trim_leading_digits("12", 2) == ""
    assert trim_leading_digits("123", 0) == "123"


def test_trim_policy_normalizes_inputs():
    p = TrimPolicy(trim_digits=-3, prefix="0a9x7")
    assert p.trim_digits == 0
    assert p.prefix == "09"


@pytest.mark.parametrize(
    "raw,policy,expected",
    [
        ("1234567", RETURN_POLICY, "1234567"),
        ("991234567", RETURN_POLICY, "1234567"),  # >= 7 -> last 7
        ("12345", RETURN_POLICY, "0012345"),  # < 7 -> zero pad
        ("12345", TrimPolicy(prefix="09"), "0912345"),
        ("8812345", TrimPolicy(trim_digits=2, prefix="09"), "0912345"),
        ("12", TrimPolicy(trim_digits=2), ""),
        ("", RETURN_POLICY, ""),
    ],
)
def test_normalize_barcode_to7(raw, policy, expected):
    assert normalize_barcode_to7(raw, policy) == expected


def test_barcode_round_trip_is_stable():
    for raw in ["0001234", "1234567", "0912345", "9999999"]:
        once = normalize_barcode_to7(raw, RETURN_POLICY)
        assert normalize_barcode_to7(once, RETURN_POLICY) == once
        assert len(once) == 7


def test_barcode_value_per_policy():
    assert barcode_value("0001234", ERP_POLICY) == 1234
    assert barcode_value("  ", ERP_POLICY) is None
    assert barcode_value(991000100, TrimPolicy(trim_digits=2, fixed_width=False)) == 1000100
    assert barcode_value("12345", TrimPolicy(prefix="09")) == 912345
    assert barcode_value(None, RETURN_POLICY) is None
