import pytest

from leasepool.core.pool.validation import MAX_VALUE_LENGTH, filter_valid, is_valid, normalize


@pytest.mark.parametrize("value", [
    "a@example.com",
    "first.last+tag@sub.example.co.uk",
    "  spaced@example.com\n",
    "o'brien@example.ie",
])
def test_valid_values(value) -> None:
    assert is_valid(value)


@pytest.mark.parametrize("value", [
    "",
    "   ",
    "plain",
    "@example.com",
    "user@",
    "user@localhost",
    "two@@example.com",
    "sp ace@example.com",
    "user@-bad.com",
    ".dot@example.com",
    None,
    123,
])
def test_invalid_values(value) -> None:
    assert not is_valid(value)


def test_length_limits() -> None:
    assert not is_valid("x" * 65 + "@example.com")
    assert is_valid("x" * 64 + "@example.com")
    long_domain = ".".join(["a" * 60] * 5) + ".com"
    assert len("u@" + long_domain) > MAX_VALUE_LENGTH
    assert not is_valid("u@" + long_domain)


def test_normalize() -> None:
    assert normalize("  a@example.com ") == "a@example.com"
    assert normalize(b"a@example.com") is None


def test_filter_valid_is_lazy_and_normalizes() -> None:
    def source():
        yield " a@example.com "
        yield "junk"
        raise AssertionError("consumed past the first valid value")

    it = filter_valid(source())
    assert next(it) == "a@example.com"
