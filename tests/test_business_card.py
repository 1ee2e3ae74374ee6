"""Tests for business card parsing and decoding."""

import base64

import pytest

from notes.errors import InvalidInput
from processing.business_card import decode_image_data, parse_business_card_text


class TestParseBusinessCardText:
    def test_typical_card(self):
        fields = parse_business_card_text(
            "Jane Doe\nHead of Sales\njane.doe@acme.io\n555-123-4567\nAcme Corp"
        )
        assert fields == {
            "name": "Jane Doe",
            "email": "jane.doe@acme.io",
            "phone": "555-123-4567",
            "company": "Head of Sales",
            "role": "Acme Corp",
        }

    def test_lines_are_consumed_in_order(self):
        # The first non-matching line after the name becomes the company.
        fields = parse_business_card_text("ACME\nJohn Smith\nCEO")
        assert fields["name"] == "ACME"
        assert fields["company"] == "John Smith"
        assert fields["role"] == "CEO"

    def test_email_extracted_from_longer_line(self):
        fields = parse_business_card_text("Email: bob@example.com")
        assert fields["email"] == "bob@example.com"

    def test_phone_with_country_code(self):
        fields = parse_business_card_text("Tel +1 (555) 987-6543")
        assert fields["phone"] == "+1 (555) 987-6543"

    def test_short_lines_ignored(self):
        fields = parse_business_card_text("AB\n\n  \nXY")
        assert fields == {"name": "", "email": "", "phone": "", "company": "", "role": ""}

    def test_empty(self):
        assert parse_business_card_text("")["name"] == ""


class TestDecodeImageData:
    def test_data_url(self):
        data = "data:image/jpeg;base64," + base64.b64encode(b"abc").decode()
        assert decode_image_data(data) == (b"abc", "image/jpeg")

    def test_bare_base64_defaults_to_png(self):
        assert decode_image_data(base64.b64encode(b"abc").decode()) == (b"abc", "image/png")

    def test_empty(self):
        with pytest.raises(InvalidInput):
            decode_image_data("")

    def test_garbage(self):
        with pytest.raises(InvalidInput):
            decode_image_data("not base64!!")
