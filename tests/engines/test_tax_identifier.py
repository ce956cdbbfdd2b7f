"""
Tests for tax identifier validation (GB VAT, UAE TRN, Indian GSTIN).
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from compliance_engines.tax_identifier import (
    DEFAULT_REGISTRY,
    INVALID_CHECKSUM,
    INVALID_FORMAT,
    INVALID_STATE_CODE,
    UNSUPPORTED_JURISDICTION,
    TaxIdentifierResult,
    ae_check_digit,
    gb_check_digits_for,
    gb_check_digits_valid,
    validate_tax_identifier,
)

seven_digits = st.text(alphabet="0123456789", min_size=7, max_size=7)


class TestGbVat:

    def test_valid_number(self):
        result = validate_tax_identifier("GB980780684", "GB")
        assert result.valid
        assert result.formatted == "GB 980 7806 84"
        assert result.kind == "standard"

    def test_spaces_and_case_are_normalized(self):
        result = validate_tax_identifier("gb 980 7806 84", "GB")
        assert result.valid
        assert result.normalized == "GB980780684"

    def test_uk_alias(self):
        assert validate_tax_identifier("GB980780684", "UK").jurisdiction == "GB"

    def test_sequential_digits_fail_checksum(self):
        result = validate_tax_identifier("GB123456789", "GB")
        assert not result.valid
        assert result.error_code == INVALID_CHECKSUM

    def test_missing_prefix(self):
        assert validate_tax_identifier("980780684", "GB").error_code == INVALID_FORMAT

    def test_wrong_length(self):
        assert validate_tax_identifier("GB12345", "GB").error_code == INVALID_FORMAT

    def test_group_registration_format(self):
        result = validate_tax_identifier("GB980780684001", "GB")
        assert result.valid
        assert result.kind == "group"
        assert result.formatted == "GB 980 7806 84 001"

    @given(seven_digits)
    def test_constructed_check_digits_are_accepted(self, body):
        for check in gb_check_digits_for(body):
            if check < 100:
                assert gb_check_digits_valid(f"{body}{check:02d}")

    @given(seven_digits, st.integers(min_value=0, max_value=6), st.integers(min_value=1, max_value=9))
    def test_single_digit_change_moves_primary_check(self, body, position, delta):
        digits = list(body)
        digits[position] = str((int(digits[position]) + delta) % 10)
        mutated = "".join(digits)
        # weight * change is below 97, so the remainder always moves
        assert gb_check_digits_for(mutated)[0] != gb_check_digits_for(body)[0]


class TestUaeTrn:

    def test_valid_trn(self):
        result = validate_tax_identifier("100123456789011", "AE")
        assert result.valid
        assert result.formatted == "100 123 456 789 011"

    def test_must_start_with_100(self):
        assert validate_tax_identifier("200123456789011", "AE").error_code == INVALID_FORMAT

    def test_wrong_check_digit(self):
        assert validate_tax_identifier("100123456789012", "AE").error_code == INVALID_CHECKSUM

    def test_non_digits(self):
        assert validate_tax_identifier("100ABC456789011", "AE").error_code == INVALID_FORMAT

    @given(st.text(alphabet="0123456789", min_size=11, max_size=11))
    def test_computed_check_digit_validates(self, tail):
        first_fourteen = "100" + tail
        trn = first_fourteen + str(ae_check_digit(first_fourteen))
        assert validate_tax_identifier(trn, "AE").valid


class TestGstin:

    def test_valid_gstin(self):
        result = validate_tax_identifier("27AAPFU0939F1ZV", "IN")
        assert result.valid
        assert result.details["state_name"] == "Maharashtra"
        assert result.details["pan"] == "AAPFU0939F"
        assert result.details["entity_type"] == "Firm"

    def test_unknown_state_code(self):
        assert validate_tax_identifier("99AAPFU0939F1ZV", "IN").error_code == INVALID_STATE_CODE

    def test_bad_pattern(self):
        assert validate_tax_identifier("27AAPFU0939F1XV", "IN").error_code == INVALID_FORMAT

    def test_wrong_length(self):
        assert validate_tax_identifier("27AAPFU0939F1Z", "IN").error_code == INVALID_FORMAT


class TestRegistry:

    def test_unsupported_jurisdiction(self):
        result = validate_tax_identifier("123", "FR")
        assert not result
        assert result.error_code == UNSUPPORTED_JURISDICTION

    def test_identifier_only_for_valid_results(self):
        assert validate_tax_identifier("GB123456789", "GB").identifier is None
        identifier = validate_tax_identifier("GB980780684", "GB").identifier
        assert identifier.jurisdiction == "GB"

    def test_custom_validator_registration(self):
        registry = DEFAULT_REGISTRY.with_aliases({"EN": "GB"})
        registry.register("SG", lambda value: TaxIdentifierResult(valid=True, jurisdiction="SG", normalized=value))
        assert validate_tax_identifier("m90312345a", "sg", registry).normalized == "M90312345A"
        assert validate_tax_identifier("GB980780684", "EN", registry).valid
        assert "SG" not in DEFAULT_REGISTRY.jurisdictions

    def test_never_raises_on_garbage(self):
        assert not validate_tax_identifier("", "GB")
        assert not validate_tax_identifier("   ", "AE")
