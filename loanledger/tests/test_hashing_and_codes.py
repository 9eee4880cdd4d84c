import pytest

from loanledger.app.ledger.codes import (
    ALL_TABLES,
    ChatState,
    CreditGrade,
    DocumentType,
    LoanStatus,
    PaymentStatus,
    grade_for_score,
)
from loanledger.app.ledger.errors import EncodingError
from loanledger.app.ledger.hashing import (
    ZERO_HASH,
    from_bytes32,
    hash_identifier,
    hash_json,
    is_hashed_identifier,
    to_bytes32,
)


def test_hash_is_deterministic_and_well_formed():
    first = hash_identifier("+91-555-0100")
    second = hash_identifier("+91-555-0100")
    assert first == second
    assert is_hashed_identifier(first)
    assert len(first) == 66


def test_different_identifiers_hash_differently():
    assert hash_identifier("+91-555-0100") != hash_identifier("+91-555-0101")


def test_hash_is_keccak256():
    # keccak256("abc"), not sha3-256
    assert hash_identifier("abc") == "0x4e03657aea45a94fc7d47ba826c8d667c0d1e6e33a64a036ec44f58fa12d6c45"


def test_missing_identifier_hashes_to_zero():
    assert hash_identifier(None) == ZERO_HASH
    assert hash_identifier("") == ZERO_HASH


def test_hash_json_ignores_key_order():
    assert hash_json({"a": 1, "b": [1, 2]}) == hash_json({"b": [1, 2], "a": 1})
    assert hash_json({"a": 1}) != hash_json({"a": 2})


def test_bytes32_conversion_rejects_malformed_digests():
    digest = hash_identifier("x")
    assert from_bytes32(to_bytes32(digest)) == digest
    with pytest.raises(EncodingError):
        to_bytes32("0x1234")
    with pytest.raises(EncodingError):
        to_bytes32("not-a-hash")


@pytest.mark.parametrize("table", ALL_TABLES)
def test_every_label_survives_encode_decode(table):
    for member in table.known():
        assert table.decode(table.encode(member.value)) == member.value


def test_codes_follow_definition_order():
    assert LoanStatus.encode("pending") == 0
    assert LoanStatus.encode("offered") == 1
    assert LoanStatus.encode("disbursed") == 6
    assert DocumentType.encode("bankStatement") == 2
    assert CreditGrade.encode("A+") == 0
    assert CreditGrade.encode("D") == 4
    assert PaymentStatus.encode("failed") == 3
    assert ChatState.encode("accepted") == 3


def test_label_lookup_is_case_insensitive():
    assert DocumentType.encode("BANKSTATEMENT") == DocumentType.encode("bankStatement")
    assert LoanStatus.encode(" Offered ") == 1


def test_unrecognized_label_fails_loudly():
    with pytest.raises(EncodingError):
        LoanStatus.encode("approvedish")
    with pytest.raises(EncodingError):
        DocumentType.encode("passport")
    with pytest.raises(EncodingError):
        PaymentStatus.encode("")


def test_unknown_member_is_never_encoded():
    with pytest.raises(EncodingError):
        LoanStatus.encode(LoanStatus.UNKNOWN)
    with pytest.raises(EncodingError):
        LoanStatus.encode("unknown")


def test_unrecognized_code_decodes_to_unknown():
    assert LoanStatus.decode(99) == "unknown"
    assert CreditGrade.decode(17) == "Unknown"
    assert PaymentStatus.decode(-1) == "unknown"


@pytest.mark.parametrize(
    "score,grade",
    [(820, "A+"), (750, "A+"), (749, "A"), (700, "A"), (650, "B"), (600, "C"), (550, "C"), (549, "D"), (0, "D")],
)
def test_grade_for_score(score, grade):
    assert grade_for_score(score).value == grade
