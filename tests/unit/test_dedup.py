from __future__ import annotations

from slabstock.services.dedup import DedupLedger, expand_units, unit_entry_number


def test_row_expands_to_numbered_units():
    assert list(expand_units("E", 3)) == ["E-1", "E-2", "E-3"]


def test_no_entry_number_yields_none_keys():
    assert list(expand_units(None, 2)) == [None, None]
    assert unit_entry_number("", 1) is None


def test_existing_keys_are_duplicates():
    ledger = DedupLedger(["E-1"])
    assert ledger.claim("E-1") is False
    assert ledger.claim("E-2") is True


def test_claim_records_key_within_run():
    ledger = DedupLedger()
    assert ledger.claim("X-1") is True
    assert ledger.claim("X-1") is False
    assert "X-1" in ledger
    assert len(ledger) == 1


def test_none_key_is_never_a_duplicate():
    ledger = DedupLedger()
    assert all(ledger.claim(None) for _ in range(3))
    assert len(ledger) == 0
