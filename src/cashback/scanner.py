"""Detection of referral registrations inside a block."""

from typing import Any

from src.cashback.models import Referral


# Keys under which the daemon decodes an identity reservation in scriptPubKey
RESERVATION_KEYS = (
    "identityreservation",
    "reservationoutput",
    "advancednamereservation",
    "namereservation",
)


def find_identity_reservation(vout: dict[str, Any]) -> dict[str, Any] | None:
    """Return the decoded identity reservation carried by an output, if any."""
    script_pub_key = vout.get("scriptPubKey") or {}
    for key in RESERVATION_KEYS:
        reservation = script_pub_key.get(key)
        if isinstance(reservation, dict):
            return reservation
    return None


def scan_block_for_referrals(
    block: dict[str, Any], referral_currency_id: str
) -> list[Referral]:
    """Find every identity reservation in a block that uses our referral.

    Transactions and their outputs are visited in block order, so the result
    keeps the order in which registrations appear on chain.

    Args:
        block: getblock result at verbosity 2
        referral_currency_id: Identity that must appear as the referral

    Returns:
        list[Referral]: Matching reservations (may be empty)
    """
    referrals: list[Referral] = []
    for tx in block.get("tx", []):
        if not isinstance(tx, dict):
            continue  # verbosity 1 block, txids only
        for vout in tx.get("vout", []):
            reservation = find_identity_reservation(vout)
            if reservation is None:
                continue
            if reservation.get("referral") != referral_currency_id:
                continue

            name_id = reservation.get("nameid")
            name = reservation.get("name")
            if not name_id or name is None:
                continue

            referrals.append(
                Referral(
                    name_id=name_id,
                    name=name,
                    txid=tx.get("txid"),
                )
            )
    return referrals


__all__ = [
    "RESERVATION_KEYS",
    "find_identity_reservation",
    "scan_block_for_referrals",
]
