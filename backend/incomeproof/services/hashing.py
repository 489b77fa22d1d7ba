"""
Canonical Hasher

Deterministic SHA-256 of a witness. The backend and the client compute this
independently and must agree bit-for-bit, so the serialization is fixed to
what JSON.stringify produces for the same object with sorted keys:

- keys sorted lexicographically (wire names)
- compact separators, no whitespace
- numbers in JavaScript's Number-to-String form: 5000 (never 5000.0),
  0.00001, 1e-7, 1e+21
- booleans as true / false
- UTF-8 encoding, lowercase hex digest
"""
import hashlib
import json
import math
from decimal import Decimal
from typing import Any, Mapping, Union

from ..errors import WitnessValidationError
from ..models.witness import Witness


# Integers beyond this lose precision as a JavaScript number (2**53 - 1)
MAX_SAFE_INTEGER = 9_007_199_254_740_991


def _shortest_digits(value: float):
    """Shortest round-trip digits of a positive float and its decimal exponent."""
    sign, digits, exponent = Decimal(repr(value)).as_tuple()
    text = "".join(str(d) for d in digits)
    stripped = text.rstrip("0")
    exponent += len(text) - len(stripped)
    return stripped, exponent


def js_number(value: Union[int, float]) -> str:
    """
    Render a number exactly as JavaScript's Number.prototype.toString does.

    Python's repr already picks the shortest round-trip digits (the same
    digits JavaScript picks); only the placement of the decimal point and
    the exponent thresholds differ.
    """
    if isinstance(value, bool):
        raise WitnessValidationError("Cannot hash a boolean as a number")
    if isinstance(value, int):
        if abs(value) <= MAX_SAFE_INTEGER:
            return str(value)
        value = float(value)
    if not math.isfinite(value):
        raise WitnessValidationError("Cannot hash a non-finite number")
    if value == 0:
        return "0"
    if value < 0:
        return "-" + js_number(-value)

    digits, exponent = _shortest_digits(value)
    k = len(digits)
    n = k + exponent  # position of the decimal point relative to the digits

    if k <= n <= 21:
        return digits + "0" * (n - k)
    if 0 < n <= 21:
        return f"{digits[:n]}.{digits[n:]}"
    if -6 < n <= 0:
        return "0." + "0" * (-n) + digits

    e = n - 1
    mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
    return f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"


def _canonical_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    return js_number(value)


def _as_witness(witness: Union[Witness, Mapping[str, Any]]) -> Witness:
    if isinstance(witness, Witness):
        return witness
    return Witness.from_dict(witness)


def canonical_witness_json(witness: Union[Witness, Mapping[str, Any]]) -> str:
    """Canonical serialization of a witness (validated first)."""
    data = _as_witness(witness).to_dict()
    members = (
        f"{json.dumps(key, ensure_ascii=False)}:{_canonical_value(data[key])}"
        for key in sorted(data)
    )
    return "{" + ",".join(members) + "}"


def hash_witness(witness: Union[Witness, Mapping[str, Any]]) -> str:
    """SHA-256 (64 lowercase hex chars) of the canonical witness serialization."""
    return hashlib.sha256(canonical_witness_json(witness).encode("utf-8")).hexdigest()


def verify_witness_hash(witness: Union[Witness, Mapping[str, Any]], expected_hash: str) -> bool:
    return hash_witness(witness) == expected_hash.lower()


def hash_employer(employer_name: str) -> str:
    """One-way employer identity hash; the raw name never enters a witness."""
    return hashlib.sha256(employer_name.encode("utf-8")).hexdigest()
