"""
Tests for fiscal period classification and vendor normalization.
"""
from datetime import date, datetime

import pytest

from app.xero.periods import FiscalPeriods, Period, PeriodCounters, parse_xero_date
from app.xero.vendors import UNKNOWN_VENDOR, VENDOR_MAPPINGS, VendorNormalizer, vendor_key


# =============================================================================
# Fiscal periods
# =============================================================================

class TestFiscalPeriods:
    """Tests for FiscalPeriods."""

    @pytest.fixture
    def periods(self):
        return FiscalPeriods.for_today(date(2025, 3, 15))

    def test_boundaries_before_july(self, periods):
        assert periods.prior_fy_start == date(2023, 7, 1)
        assert periods.prior_fy_end == date(2024, 6, 30)
        assert periods.current_fy_start == date(2024, 7, 1)
        assert periods.from_date == date(2023, 7, 1)
        assert periods.to_date == date(2025, 3, 15)

    def test_boundaries_from_july(self):
        periods = FiscalPeriods.for_today(date(2025, 7, 1))

        assert periods.current_fy_start == date(2025, 7, 1)
        assert periods.prior_fy_start == date(2024, 7, 1)

    def test_current_fy_start_is_current(self, periods):
        assert periods.classify_date(date(2024, 7, 1)) == Period.CURRENT_FY

    def test_day_before_current_fy_is_prior(self, periods):
        assert periods.classify_date(date(2024, 6, 30)) == Period.PRIOR_FY

    def test_prior_fy_start_is_prior(self, periods):
        assert periods.classify_date(date(2023, 7, 1)) == Period.PRIOR_FY

    def test_day_before_prior_fy_is_excluded(self, periods):
        assert periods.classify_date(date(2023, 6, 30)) is None

    def test_classify_ignores_time_component(self, periods):
        assert periods.classify("2024-06-30T23:59:59") == Period.PRIOR_FY
        assert periods.classify("2024-07-01T00:00:00") == Period.CURRENT_FY

    def test_classify_unparseable_is_excluded(self, periods):
        assert periods.classify("not a date") is None
        assert periods.classify("") is None


class TestParseXeroDate:
    """Tests for parse_xero_date."""

    def test_json_date(self):
        assert parse_xero_date("/Date(1719792000000+0000)/") == date(2024, 7, 1)

    def test_iso_date(self):
        assert parse_xero_date("2025-02-01T00:00:00") == date(2025, 2, 1)

    def test_date_objects(self):
        assert parse_xero_date(datetime(2025, 2, 1, 13, 0)) == date(2025, 2, 1)
        assert parse_xero_date(date(2025, 2, 1)) == date(2025, 2, 1)

    def test_missing(self):
        assert parse_xero_date(None) is None


class TestPeriodCounters:
    """Tests for PeriodCounters."""

    def test_record_and_merge(self):
        first = PeriodCounters()
        first.record(Period.PRIOR_FY)
        first.record(None)
        second = PeriodCounters()
        second.record(Period.CURRENT_FY)
        second.record(Period.CURRENT_FY)

        merged = first.merge(second)

        assert (merged.prior_fy, merged.current_fy, merged.skipped) == (1, 2, 1)


# =============================================================================
# Vendor normalization
# =============================================================================

class TestVendorNormalizer:
    """Tests for VendorNormalizer."""

    @pytest.fixture
    def normalizer(self):
        return VendorNormalizer()

    def test_known_vendor_in_contact(self, normalizer):
        assert normalizer.normalize("XERO 123.45", "") == "Xero"

    def test_noise_prefix_is_stripped(self, normalizer):
        assert normalizer.normalize("PAYPAL *CANVA", None) == "Canva"

    def test_first_dictionary_match_wins(self, normalizer):
        assert normalizer.normalize("GOOGLE CLOUD AWS", None) == "Google Workspace"

    def test_description_checked_when_contact_unknown(self, normalizer):
        assert normalizer.normalize("Pty Ltd Reseller", "Slack subscription") == "Slack"

    def test_unknown_contact_is_title_cased(self, normalizer):
        assert normalizer.normalize("acme  WIDGETS co", "monthly fee") == "Acme Widgets Co"

    def test_description_words_when_no_contact(self, normalizer):
        assert normalizer.normalize("", "DIRECT DEBIT SOMETHING-NEW_LTD EXTRA WORDS") == "Something New Ltd"

    def test_short_description_kept_verbatim(self, normalizer):
        assert normalizer.normalize(None, "AB-CD") == "AB-CD"

    def test_everything_empty(self, normalizer):
        assert normalizer.normalize(None, None) == UNKNOWN_VENDOR

    def test_injected_mappings(self):
        normalizer = VendorNormalizer({"ACME": "Acme Corp"})

        assert normalizer.normalize("ACME LTD", None) == "Acme Corp"
        assert normalizer.normalize("SLACK", None) == "Slack"

    def test_mappings_are_read_only(self):
        with pytest.raises(TypeError):
            VENDOR_MAPPINGS["NEW"] = "New"

    def test_vendor_key(self):
        assert vendor_key("Sync.com") == "synccom"
        assert vendor_key("Sync.com") == vendor_key("synccom")
        assert vendor_key("Microsoft 365") == "microsoft365"
