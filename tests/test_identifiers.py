"""
Unit tests for identifier normalisation and office name lookup.
"""

import pytest

from office_access.config import UNKNOWN_OFFICE_NAME
from office_access.identifiers import (
    check_office_directory,
    format_oid,
    normalize,
    normalize_pgid,
    normalize_user_id,
    resolve_name,
)
from office_access.models import Office


# ── Tests: normalize ─────────────────────────────────────────────────

def test_normalize_strips_office_prefix():
    assert normalize("O-123") == "123"


def test_normalize_leaves_bare_id_unchanged():
    assert normalize("123") == "123"
    assert normalize(123) == "123"


@pytest.mark.parametrize("raw", ["O-5", "5", "O-O-5", "", "O-", "Office-5", " O-5", "o-5"])
def test_normalize_is_idempotent(raw):
    assert normalize(normalize(raw)) == normalize(raw)


def test_other_prefixes():
    assert normalize_user_id("U-42") == "42"
    assert normalize_pgid("P-001") == "001"
    assert normalize_pgid("001") == "001"


def test_format_oid():
    assert format_oid("5") == "O-5"
    assert format_oid("O-5") == "O-5"


def test_oid_round_trip_for_directory(offices):
    for office in offices:
        assert normalize(office.oid) == office.office_id


# ── Tests: resolve_name ──────────────────────────────────────────────

def test_resolve_name_exact_id(offices):
    assert resolve_name("6", offices) == "Wexford"


def test_resolve_name_by_oid(offices):
    assert resolve_name("O-6", offices) == "Wexford"


def test_resolve_name_exact_id_wins_over_oid():
    directory = [
        Office(office_id="12", oid="O-7", name="By oid"),
        Office(office_id="7", oid="O-99", name="By id"),
    ]
    assert resolve_name("7", directory) == "By id"


def test_resolve_name_miss_returns_placeholder(offices):
    assert resolve_name("404", offices) == UNKNOWN_OFFICE_NAME
    assert resolve_name("5", []) == UNKNOWN_OFFICE_NAME


# ── Tests: check_office_directory ────────────────────────────────────

def test_check_office_directory_ok(offices):
    check_office_directory(offices)


def test_check_office_directory_duplicate_id():
    with pytest.raises(ValueError, match="Duplicate office_id"):
        check_office_directory([
            Office(office_id="5", oid="O-5", name="A"),
            Office(office_id="5", oid="O-5", name="B"),
        ])


def test_check_office_directory_oid_mismatch():
    with pytest.raises(ValueError, match="does not normalise"):
        check_office_directory([Office(office_id="5", oid="O-6", name="A")])
