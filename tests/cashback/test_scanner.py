"""Tests for referral detection in blocks."""

import pytest

from src.cashback.scanner import (
    RESERVATION_KEYS,
    find_identity_reservation,
    scan_block_for_referrals,
)
from tests.fakes import REFERRAL_ID, make_block, reservation


class TestFindIdentityReservation:
    """Tests for find_identity_reservation."""

    def test_plain_output_has_no_reservation(self) -> None:
        """Test payment outputs are ignored."""
        vout = {"n": 0, "scriptPubKey": {"type": "pubkeyhash"}}
        assert find_identity_reservation(vout) is None

    def test_missing_script_pub_key(self) -> None:
        """Test outputs without scriptPubKey are ignored."""
        assert find_identity_reservation({"n": 0}) is None

    @pytest.mark.parametrize("key", RESERVATION_KEYS)
    def test_every_reservation_key_is_recognised(self, key: str) -> None:
        """Test each decoded reservation flavour is found."""
        found = reservation("alice", "iAlice")
        vout = {"n": 0, "scriptPubKey": {key: found}}
        assert find_identity_reservation(vout) == found


class TestScanBlockForReferrals:
    """Tests for scan_block_for_referrals."""

    def test_matching_referral_is_found(self) -> None:
        """Test a reservation naming our referral is returned."""
        block = make_block([reservation("alice", "iAlice")])

        referrals = scan_block_for_referrals(block, REFERRAL_ID)

        assert len(referrals) == 1
        assert referrals[0].name == "alice"
        assert referrals[0].name_id == "iAlice"
        assert referrals[0].txid == f"{0:064x}"

    def test_other_referral_is_ignored(self) -> None:
        """Test a reservation with a different referral yields nothing."""
        block = make_block([reservation("bob", "iBob", referral="iSomeoneElse")])

        assert scan_block_for_referrals(block, REFERRAL_ID) == []

    def test_missing_referral_is_ignored(self) -> None:
        """Test a reservation without any referral yields nothing."""
        block = make_block([reservation("carol", "iCarol", referral=None)])

        assert scan_block_for_referrals(block, REFERRAL_ID) == []

    def test_empty_block(self) -> None:
        """Test blocks without matching transactions yield nothing."""
        assert scan_block_for_referrals(make_block([None, None]), REFERRAL_ID) == []
        assert scan_block_for_referrals({"tx": []}, REFERRAL_ID) == []

    def test_block_order_is_preserved(self) -> None:
        """Test several registrations come back in on-chain order."""
        block = make_block([
            reservation("alice", "iAlice"),
            None,
            reservation("bob", "iBob", referral="iSomeoneElse"),
            reservation("dave", "iDave"),
        ])

        referrals = scan_block_for_referrals(block, REFERRAL_ID)

        assert [r.name for r in referrals] == ["alice", "dave"]
        assert referrals[1].txid == f"{3:064x}"

    def test_txid_only_transactions_are_skipped(self) -> None:
        """Test a verbosity 1 block (txids only) is handled."""
        block = {"hash": "ab" * 32, "tx": ["00" * 32, "11" * 32]}

        assert scan_block_for_referrals(block, REFERRAL_ID) == []

    def test_reservation_without_nameid_is_skipped(self) -> None:
        """Test incomplete reservations are not recorded."""
        incomplete = reservation("erin", "iErin")
        del incomplete["nameid"]

        assert scan_block_for_referrals(make_block([incomplete]), REFERRAL_ID) == []

    def test_alternative_reservation_key(self) -> None:
        """Test advanced name reservations are detected too."""
        block = make_block(
            [reservation("frank", "iFrank")],
            reservation_key="advancednamereservation",
        )

        referrals = scan_block_for_referrals(block, REFERRAL_ID)

        assert [r.name_id for r in referrals] == ["iFrank"]
