"""
Tests for the typed transaction details union.
"""

import uuid

import pytest

from tmc_ledger.exceptions import LedgerValidationError
from tmc_ledger.schemas.details import (
    CommissionDetails,
    FeatureUsageDetails,
    TransferDetails,
    dump_details,
    parse_details,
)


class TestParseDetails:

    def test_none_passes_through(self):
        assert parse_details(None) is None
        assert dump_details(None) is None

    def test_dict_is_dispatched_on_kind(self):
        record_id = uuid.uuid4()

        details = parse_details(
            {"kind": "feature_usage", "function_used": "prescription", "medical_record_id": str(record_id)}
        )

        assert isinstance(details, FeatureUsageDetails)
        assert details.medical_record_id == record_id

    def test_variant_instance_is_kept(self):
        details = TransferDetails(note="rent")
        assert parse_details(details) is details

    @pytest.mark.parametrize(
        "raw",
        [
            {"kind": "unknown"},
            {"function_used": "prescription"},
            {"kind": "feature_usage"},
            {"kind": "commission", "payer_account_id": "not-a-uuid", "commission_percent": 10, "original_amount": 5},
            {"kind": "commission", "payer_account_id": str(uuid.uuid4()), "commission_percent": 150, "original_amount": 5},
            {"kind": "transfer", "note": "x", "surprise": True},
        ],
    )
    def test_malformed_details_rejected(self, raw):
        with pytest.raises(LedgerValidationError):
            parse_details(raw)

    def test_dump_is_json_ready(self):
        payer = uuid.uuid4()

        dumped = dump_details(
            CommissionDetails(payer_account_id=payer, commission_percent=30, original_amount=100)
        )

        assert dumped == {
            "kind": "commission",
            "payer_account_id": str(payer),
            "commission_percent": 30,
            "original_amount": 100,
        }
