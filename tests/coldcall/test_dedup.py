"""Unit tests for lead dedup key normalization."""

import pytest

from coldcall.utils.dedup import extract_domain, normalize_dedup_key, normalize_phone_digits


class TestPhoneKeys:
    """Phone numbers are keyed by their last ten digits."""

    @pytest.mark.parametrize(
        "phone",
        ["(555) 123-4567", "+15551234567", "555.123.4567", "+1 555 123 4567", "1-555-123-4567"],
    )
    def test_formatting_does_not_change_key(self, phone):
        """Test that punctuation, spacing and country code are ignored."""
        assert normalize_dedup_key(phone=phone) == "phone_5551234567"

    def test_phone_beats_website(self):
        """Test that a phone-derived key wins over a website."""
        key = normalize_dedup_key(
            phone="555-123-4567", website="https://example.com", name="Joe", address="1 Main"
        )
        assert key == "phone_5551234567"

    def test_short_phone_falls_through(self):
        """Test that fewer than ten digits is not used as a key."""
        key = normalize_dedup_key(phone="555-1234", website="example.com")
        assert key == "domain_example.com"

    def test_normalize_phone_digits_empty(self):
        assert normalize_phone_digits(None) == ""
        assert normalize_phone_digits("") == ""


class TestWebsiteKeys:
    """Websites are keyed by normalized hostname."""

    def test_www_and_case_stripped(self):
        """Test the canonical example from the dedup rules."""
        assert normalize_dedup_key(website="https://www.Example.com/contact") == "domain_example.com"

    def test_scheme_optional(self):
        assert normalize_dedup_key(website="example.com/about") == "domain_example.com"

    def test_blank_website_ignored(self):
        assert extract_domain("   ") is None


class TestNameAddressKeys:
    """Name plus address prefix is used when no phone or website is known."""

    def test_name_and_address(self):
        key = normalize_dedup_key(name="Joe's Cafe", address="123 Main St, Springfield, IL 62701")
        assert key == "name_addr_joescafe_123mainstspringfield"

    def test_address_prefix_is_twenty_chars(self):
        key = normalize_dedup_key(name="A", address="x" * 50)
        assert key == "name_addr_a_" + "x" * 20


class TestFallbackKeys:
    """Leads with no usable identifier never collide."""

    def test_fallback_prefix(self):
        assert normalize_dedup_key().startswith("fallback_")

    def test_fallback_keys_unique(self):
        """Test that two calls with nothing to key on differ."""
        keys = {normalize_dedup_key(name="Only Name") for _ in range(20)}
        assert len(keys) == 20
