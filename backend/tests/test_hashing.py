"""
Tests for the canonical witness hasher.

1. Determinism
2. Sensitivity to every single field
3. Fixed end-to-end vector (independently reproducible)
4. Canonical number rendering
5. Validation before hashing
6. JavaScript number form for small and large amounts
"""
import dataclasses

import pytest

from incomeproof.errors import WitnessValidationError
from incomeproof.services.hashing import (
    canonical_witness_json,
    hash_employer,
    hash_witness,
    js_number,
    verify_witness_hash,
)

from conftest import EMPLOYER_HASH, make_witness


# sha256("Acme Corp")
ACME_HASH = "a73cb4563ee2e72ce0ce805d444364ecca6bebe02d04917915d6481de184abe3"

# sha256 of the canonical JSON of the reference witness
REFERENCE_HASH = "00679c5ecc56bd429c8cb408d120f534fbdbdf8dce83c1dcd06af01503f2fbab"
REFERENCE_HASH_NO_LIABILITIES = "73989bc47341430bebd3201bf8862abdf461ea820f43e02a609e44072e577a5d"


class TestDeterminism:

    def test_same_witness_same_hash(self, sample_witness):
        assert hash_witness(sample_witness) == hash_witness(sample_witness)

    def test_equal_witnesses_hash_equal(self):
        assert hash_witness(make_witness()) == hash_witness(make_witness())

    def test_hash_is_64_lowercase_hex(self, sample_witness):
        digest = hash_witness(sample_witness)
        assert len(digest) == 64
        assert digest == digest.lower()
        int(digest, 16)

    def test_mapping_and_witness_agree(self, sample_witness):
        assert hash_witness(sample_witness.to_dict()) == hash_witness(sample_witness)


class TestSensitivity:
    """Changing exactly one field always changes the hash."""

    @pytest.mark.parametrize("field,value", [
        ("income", 5001),
        ("employment_months", 13),
        ("employer_hash", "c" * 64),
        ("assets", 49999),
        ("liabilities", 0),
        ("credit_score", 721),
        ("ssn_verified", False),
        ("selfie_verified", False),
        ("document_verified", False),
        ("timestamp", 1234567890001),
    ])
    def test_single_field_change(self, sample_witness, field, value):
        changed = dataclasses.replace(sample_witness, **{field: value})
        assert hash_witness(changed) != hash_witness(sample_witness)

    def test_boolean_flags_are_not_interchangeable(self):
        only_ssn = make_witness(ssn_verified=True, selfie_verified=False, document_verified=False)
        only_selfie = make_witness(ssn_verified=False, selfie_verified=True, document_verified=False)
        only_document = make_witness(ssn_verified=False, selfie_verified=False, document_verified=True)
        hashes = {hash_witness(only_ssn), hash_witness(only_selfie), hash_witness(only_document)}
        assert len(hashes) == 3


class TestReferenceVector:

    def test_employer_hash(self):
        assert hash_employer("Acme Corp") == ACME_HASH
        assert EMPLOYER_HASH == ACME_HASH

    def test_canonical_json(self, sample_witness):
        assert canonical_witness_json(sample_witness) == (
            '{"assets":50000,"creditScore":720,"documentVerified":true,'
            f'"employerHash":"{ACME_HASH}","employmentMonths":12,"income":5000,'
            '"liabilities":10000,"selfieVerified":true,"ssnVerified":true,'
            '"timestamp":1234567890000}'
        )

    def test_reference_hash(self, sample_witness):
        assert hash_witness(sample_witness) == REFERENCE_HASH

    def test_zero_liabilities_changes_hash(self, sample_witness):
        changed = dataclasses.replace(sample_witness, liabilities=0)
        assert hash_witness(changed) == REFERENCE_HASH_NO_LIABILITIES
        assert hash_witness(make_witness()) == REFERENCE_HASH

    def test_integral_floats_render_as_integers(self):
        as_floats = make_witness(income=5000.0, assets=50000.0, liabilities=10000.0, credit_score=720.0)
        assert hash_witness(as_floats) == REFERENCE_HASH

    def test_fractional_amounts_are_kept(self):
        witness = make_witness(income=5000.5)
        assert '"income":5000.5' in canonical_witness_json(witness)


class TestVerifyAndValidate:

    def test_verify_witness_hash(self, sample_witness):
        assert verify_witness_hash(sample_witness, REFERENCE_HASH)
        assert verify_witness_hash(sample_witness, REFERENCE_HASH.upper())
        assert not verify_witness_hash(sample_witness, "0" * 64)

    def test_missing_field_rejected(self, sample_witness):
        data = sample_witness.to_dict()
        del data["creditScore"]
        with pytest.raises(WitnessValidationError):
            hash_witness(data)

    def test_boolean_as_number_rejected(self, sample_witness):
        data = sample_witness.to_dict()
        data["income"] = True
        with pytest.raises(WitnessValidationError):
            hash_witness(data)


class TestJavaScriptNumberForm:
    """Numbers render as JSON.stringify renders them in the browser."""

    @pytest.mark.parametrize("value,expected", [
        (0, "0"),
        (0.0, "0"),
        (5000, "5000"),
        (5000.0, "5000"),
        (5000.5, "5000.5"),
        (0.1, "0.1"),
        (0.000001, "0.000001"),
        (0.00001, "0.00001"),
        (1e-7, "1e-7"),
        (1.5e-7, "1.5e-7"),
        (123456.789, "123456.789"),
        (1e20, "100000000000000000000"),
        (1e21, "1e+21"),
        (1.23456e32, "1.23456e+32"),
        (10 ** 21, "1e+21"),
        (9_007_199_254_740_993, "9007199254740992"),
    ])
    def test_number_form(self, value, expected):
        assert js_number(value) == expected

    def test_small_fractional_amount_in_canonical_json(self):
        witness = make_witness(income=1e-7, liabilities=0.00001)
        canonical = canonical_witness_json(witness)
        assert '"income":1e-7' in canonical
        assert '"liabilities":0.00001' in canonical

    def test_large_amount_in_canonical_json(self):
        witness = make_witness(assets=1e21, liabilities=1e20)
        canonical = canonical_witness_json(witness)
        assert '"assets":1e+21' in canonical
        assert '"liabilities":100000000000000000000' in canonical

    def test_integer_and_float_forms_hash_alike_at_large_magnitude(self):
        assert hash_witness(make_witness(assets=10 ** 21)) == hash_witness(make_witness(assets=1e21))
