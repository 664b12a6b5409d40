"""Tests for ISBN / ASIN cleaning and Amazon product URLs."""
from __future__ import annotations

import pytest

from bookscout.isbn import (
    clean_asin,
    clean_isbn,
    clean_isbn13,
    dp_url,
    isbn10_to_isbn13,
    isbn13_to_isbn10,
)


class TestClean:

    def test_clean_isbn_strips_hyphens(self):
        assert clean_isbn("978-4-08-872509-3") == "9784088725093"

    def test_clean_isbn_rejects_garbage(self):
        assert clean_isbn("not an isbn") is None
        assert clean_isbn(None) is None

    def test_clean_isbn13_rejects_isbn10(self):
        assert clean_isbn13("4088725093") is None

    def test_check_digit_x_only_on_isbn10(self):
        assert clean_isbn("408872509x") == "408872509X"
        assert clean_isbn("978409123456X") is None
        assert clean_isbn13("978409123456X") is None

    def test_clean_asin_uppercases(self):
        assert clean_asin(" b08xyz1234 ") == "B08XYZ1234"
        assert clean_asin("B08XYZ") is None


class TestConversion:

    def test_isbn13_to_isbn10(self):
        assert isbn13_to_isbn10("9784088725093") == "4088725093"
        assert isbn13_to_isbn10("9784091234567") == "4091234569"

    def test_979_has_no_isbn10(self):
        assert isbn13_to_isbn10("9791234567896") is None

    def test_isbn10_to_isbn13(self):
        assert isbn10_to_isbn13("4088725093") == "9784088725093"


class TestDpUrl:

    def test_asin_preferred(self):
        assert dp_url(asin="B08XYZ1234", isbn13="9784091234567") == "https://www.amazon.co.jp/dp/B08XYZ1234"

    def test_isbn13_converted_to_isbn10(self):
        assert dp_url(isbn13="9784091234567") == "https://www.amazon.co.jp/dp/4091234569"

    def test_isbn10(self):
        assert dp_url(isbn10="4091234569") == "https://www.amazon.co.jp/dp/4091234569"

    def test_979_isbn13_used_as_is(self):
        assert dp_url(isbn13="9791234567896") == "https://www.amazon.co.jp/dp/9791234567896"

    @pytest.mark.parametrize("kwargs", [{}, {"asin": "bad"}, {"isbn13": "123"}])
    def test_no_identifier(self, kwargs):
        assert dp_url(**kwargs) is None
