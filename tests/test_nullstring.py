import pytest

from trueauth.nullstring import null_string_from_db, null_string_to_db


def test_null_reads_as_empty_string():
    assert null_string_from_db(None) == ""


def test_text_reads_unchanged():
    assert null_string_from_db("user@example.com") == "user@example.com"


def test_non_text_is_rejected():
    with pytest.raises(TypeError, match="Column is not a string"):
        null_string_from_db(42)


def test_empty_string_is_written_as_null():
    assert null_string_to_db("") is None
    assert null_string_to_db(None) is None


def test_text_is_written_unchanged():
    assert null_string_to_db("user@example.com") == "user@example.com"


@pytest.mark.parametrize("text", ["", "a", "user@example.com"])
def test_round_trip(text):
    assert null_string_from_db(null_string_to_db(text)) == text