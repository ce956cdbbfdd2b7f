"""
Tax Identifier Engine - parse and checksum-validate registration numbers.

Responsibility:
    Normalizes a raw identifier (strip all whitespace, uppercase), checks its
    shape for the requested jurisdiction, verifies the check digits where
    the scheme defines them, and returns a structured result.

Architecture position:
    Engines -- pure, zero I/O. Validators live in a registry keyed by
    jurisdiction code, so a new scheme is one ``register`` call.

Supported schemes:
    GB  VAT registration number. ``GB`` + 9 digits (standard) or 12 digits
        (group/branch). 9-digit bodies: weights 8..2 over the first seven
        digits, r = sum mod 97; the last two digits must equal 97 - r or
        97 - r + 55. 12-digit bodies carry no checksum.
    AE  Tax Registration Number. 15 digits starting ``100``; check digit
        from alternating weights 1,3 over the first fourteen, mod 10.
    IN  GSTIN. 15 characters: state code, PAN, entity code, ``Z``, check
        character. State code must be a known GST state.

Failure modes:
    Rejections are returned (``valid=False`` with ``error_code``), never
    raised. Codes: INVALID_FORMAT, INVALID_CHECKSUM, INVALID_STATE_CODE,
    UNSUPPORTED_JURISDICTION.

The ``formatted`` value is presentational only. ``normalized`` is the
canonical stored form.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.tax_identifier")

INVALID_FORMAT = "INVALID_FORMAT"
INVALID_CHECKSUM = "INVALID_CHECKSUM"
INVALID_STATE_CODE = "INVALID_STATE_CODE"
UNSUPPORTED_JURISDICTION = "UNSUPPORTED_JURISDICTION"

GB_WEIGHTS = (8, 7, 6, 5, 4, 3, 2)
AE_WEIGHTS = (1, 3) * 7

_WHITESPACE = re.compile(r"\s+")
_GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")

INDIAN_STATE_CODES: Mapping[str, str] = {
    "01": "Jammu and Kashmir",
    "02": "Himachal Pradesh",
    "03": "Punjab",
    "04": "Chandigarh",
    "05": "Uttarakhand",
    "06": "Haryana",
    "07": "Delhi",
    "08": "Rajasthan",
    "09": "Uttar Pradesh",
    "10": "Bihar",
    "11": "Sikkim",
    "12": "Arunachal Pradesh",
    "13": "Nagaland",
    "14": "Manipur",
    "15": "Mizoram",
    "16": "Tripura",
    "17": "Meghalaya",
    "18": "Assam",
    "19": "West Bengal",
    "20": "Jharkhand",
    "21": "Odisha",
    "22": "Chhattisgarh",
    "23": "Madhya Pradesh",
    "24": "Gujarat",
    "26": "Dadra and Nagar Haveli and Daman and Diu",
    "27": "Maharashtra",
    "28": "Andhra Pradesh (Old)",
    "29": "Karnataka",
    "30": "Goa",
    "31": "Lakshadweep",
    "32": "Kerala",
    "33": "Tamil Nadu",
    "34": "Puducherry",
    "35": "Andaman and Nicobar",
    "36": "Telangana",
    "37": "Andhra Pradesh",
    "38": "Ladakh",
}

# Fourth PAN character
PAN_ENTITY_TYPES: Mapping[str, str] = {
    "P": "Individual",
    "F": "Firm",
    "C": "Company",
    "H": "HUF",
    "A": "AOP",
    "T": "Trust",
    "B": "BOI",
    "L": "Local Authority",
    "J": "Artificial Juridical Person",
    "G": "Government",
}


@dataclass(frozen=True)
class TaxIdentifier:
    """A validated identifier. Never mutated; re-validate to change."""

    jurisdiction: str
    normalized: str
    kind: str


@dataclass(frozen=True)
class TaxIdentifierResult:
    valid: bool
    jurisdiction: str
    error: str | None = None
    error_code: str | None = None
    normalized: str | None = None
    formatted: str | None = None
    kind: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def rejected(cls, jurisdiction: str, error_code: str, error: str) -> TaxIdentifierResult:
        return cls(valid=False, jurisdiction=jurisdiction, error=error, error_code=error_code)

    @property
    def identifier(self) -> TaxIdentifier | None:
        if not self.valid:
            return None
        return TaxIdentifier(
            jurisdiction=self.jurisdiction,
            normalized=self.normalized,
            kind=self.kind,
        )

    def __bool__(self) -> bool:
        return self.valid


def normalize_identifier(raw: str) -> str:
    return _WHITESPACE.sub("", raw or "").upper()


# ---------------------------------------------------------------------------
# Checksums
# ---------------------------------------------------------------------------


def gb_check_digits_valid(digits: str) -> bool:
    """Weighted mod-97 test for a 9-digit GB VAT body."""
    total = sum(int(d) * w for d, w in zip(digits[:7], GB_WEIGHTS))
    remainder = total % 97
    check = int(digits[7:9])
    return check == 97 - remainder or check == 97 - remainder + 55


def gb_check_digits_for(first_seven: str) -> tuple[int, int]:
    """Both accepted check values for seven leading digits."""
    total = sum(int(d) * w for d, w in zip(first_seven, GB_WEIGHTS))
    remainder = total % 97
    return (97 - remainder, 97 - remainder + 55)


def ae_check_digit(first_fourteen: str) -> int:
    total = sum(int(d) * w for d, w in zip(first_fourteen, AE_WEIGHTS))
    remainder = total % 10
    return 0 if remainder == 0 else 10 - remainder


# ---------------------------------------------------------------------------
# Per-jurisdiction validators
# ---------------------------------------------------------------------------


def _validate_gb(value: str) -> TaxIdentifierResult:
    if not value.startswith("GB"):
        return TaxIdentifierResult.rejected("GB", INVALID_FORMAT, "UK VAT number must start with GB")
    digits = value[2:]
    if not digits.isdigit() or len(digits) not in (9, 12) or not digits.isascii():
        return TaxIdentifierResult.rejected(
            "GB", INVALID_FORMAT, "UK VAT number must be GB followed by 9 or 12 digits"
        )
    if len(digits) == 9 and not gb_check_digits_valid(digits):
        return TaxIdentifierResult.rejected("GB", INVALID_CHECKSUM, "Invalid VAT number check digits")

    formatted = f"GB {digits[:3]} {digits[3:7]} {digits[7:9]}"
    if len(digits) == 12:
        formatted += f" {digits[9:]}"
    return TaxIdentifierResult(
        valid=True,
        jurisdiction="GB",
        normalized=value,
        formatted=formatted,
        kind="standard" if len(digits) == 9 else "group",
    )


def _validate_ae(value: str) -> TaxIdentifierResult:
    if len(value) != 15 or not value.isdigit() or not value.isascii():
        return TaxIdentifierResult.rejected("AE", INVALID_FORMAT, "TRN must be exactly 15 digits")
    if not value.startswith("100"):
        return TaxIdentifierResult.rejected("AE", INVALID_FORMAT, "UAE TRN must start with 100")
    if ae_check_digit(value[:14]) != int(value[14]):
        return TaxIdentifierResult.rejected("AE", INVALID_CHECKSUM, "Invalid TRN check digit")
    return TaxIdentifierResult(
        valid=True,
        jurisdiction="AE",
        normalized=value,
        formatted=" ".join(value[i:i + 3] for i in range(0, 15, 3)),
        kind="trn",
    )


def _validate_in(value: str) -> TaxIdentifierResult:
    if len(value) != 15:
        return TaxIdentifierResult.rejected("IN", INVALID_FORMAT, "GSTIN must be exactly 15 characters")
    if not _GSTIN_PATTERN.match(value):
        return TaxIdentifierResult.rejected("IN", INVALID_FORMAT, "Invalid GSTIN format")
    state_code = value[:2]
    if state_code not in INDIAN_STATE_CODES:
        return TaxIdentifierResult.rejected("IN", INVALID_STATE_CODE, "Invalid state code in GSTIN")
    pan = value[2:12]
    return TaxIdentifierResult(
        valid=True,
        jurisdiction="IN",
        normalized=value,
        formatted=value,
        kind="gstin",
        details={
            "state_code": state_code,
            "state_name": INDIAN_STATE_CODES[state_code],
            "pan": pan,
            "entity_type": PAN_ENTITY_TYPES.get(pan[3], "Unknown"),
            "entity_code": value[12],
            "check_character": value[14],
        },
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

Validator = Callable[[str], TaxIdentifierResult]


class TaxIdentifierRegistry:
    """Validators keyed by jurisdiction, with country-code aliases (UK -> GB)."""

    def __init__(
        self,
        validators: Mapping[str, Validator] | None = None,
        aliases: Mapping[str, str] | None = None,
    ):
        self._validators: dict[str, Validator] = dict(validators or {})
        self._aliases: dict[str, str] = {k.upper(): v.upper() for k, v in (aliases or {}).items()}

    def register(self, jurisdiction: str, validator: Validator) -> None:
        self._validators[jurisdiction.upper()] = validator

    def resolve(self, jurisdiction: str) -> str:
        code = (jurisdiction or "").strip().upper()
        return self._aliases.get(code, code)

    def get(self, jurisdiction: str) -> Validator | None:
        return self._validators.get(self.resolve(jurisdiction))

    @property
    def jurisdictions(self) -> frozenset[str]:
        return frozenset(self._validators)

    def with_aliases(self, aliases: Mapping[str, str]) -> TaxIdentifierRegistry:
        """Copy of this registry with ``aliases`` added."""
        return TaxIdentifierRegistry(self._validators, {**self._aliases, **aliases})


DEFAULT_REGISTRY = TaxIdentifierRegistry(
    validators={"GB": _validate_gb, "AE": _validate_ae, "IN": _validate_in},
    aliases={"UK": "GB"},
)


def validate_tax_identifier(
    raw: str,
    jurisdiction: str,
    registry: TaxIdentifierRegistry | None = None,
) -> TaxIdentifierResult:
    """Validate ``raw`` under ``jurisdiction``. Never raises for bad input."""
    registry = registry or DEFAULT_REGISTRY
    code = registry.resolve(jurisdiction)
    validator = registry.get(code)
    if validator is None:
        logger.info("tax_identifier_unsupported_jurisdiction", extra={"jurisdiction": code})
        return TaxIdentifierResult.rejected(
            code, UNSUPPORTED_JURISDICTION, f"No tax identifier scheme for {code!r}"
        )

    result = validator(normalize_identifier(raw))
    if not result.valid:
        logger.info("tax_identifier_rejected", extra={
            "jurisdiction": code,
            "error_code": result.error_code,
        })
    return result
