"""
tests/test_shared/test_geo.py — Region-code normalization and the allow-list.
"""

from __future__ import annotations

import pytest

from pulse_shared.config import Settings
from pulse_shared.constants import AUSTIN_MSA_COUNTIES, AUSTIN_MSA_ZIPS
from pulse_shared.geo import RegionFilter, extract_zip, normalize_region_code


class TestNormalizeRegionCode:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("78701", "78701"),
            (" 501 ", "00501"),
            (501, "00501"),
            ("78701.0", "78701"),
            ("TX", None),
            ("123456", None),
            ("", None),
            (None, None),
        ],
    )
    def test_normalization(self, raw, expected):
        assert normalize_region_code(raw) == expected


class TestExtractZip:
    def test_redfin_style_label(self):
        assert extract_zip("Zip Code: 78701") == "78701"

    def test_six_digit_run_is_not_a_zip(self):
        assert extract_zip("Region 123456") is None

    def test_missing(self):
        assert extract_zip(None) is None
        assert extract_zip("Austin, TX") is None


class TestRegionFilter:
    def test_contains_normalizes_input(self):
        regions = RegionFilter(["501", "78701"])
        assert regions.contains("00501")
        assert regions.contains(501)
        assert regions.contains("78701")
        assert not regions.contains("78702")
        assert not regions.contains(None)

    def test_invalid_codes_are_dropped(self):
        regions = RegionFilter(["78701", "TX", ""])
        assert len(regions) == 1

    def test_in_operator(self):
        regions = RegionFilter(["78701"])
        assert "78701" in regions
        assert "10001" not in regions

    def test_austin_msa_default(self):
        regions = RegionFilter.austin_msa()
        assert "78701" in regions
        assert "73301" in regions
        assert "10001" not in regions
        assert len(regions) == len(AUSTIN_MSA_ZIPS)

    def test_austin_msa_union_is_deduplicated(self):
        total = sum(len(z) for z in AUSTIN_MSA_COUNTIES.values())
        assert len(AUSTIN_MSA_ZIPS) < total

    def test_county_subset(self):
        hays = RegionFilter.austin_msa(["hays"])
        assert "78666" in hays
        assert "78701" not in hays

    def test_unknown_county_raises(self):
        with pytest.raises(ValueError, match="Unknown county"):
            RegionFilter.austin_msa(["Harris"])

    def test_from_file(self, tmp_path):
        path = tmp_path / "zips.txt"
        path.write_text("78701\n# comment\n\n78702  # downtown east\n")
        regions = RegionFilter.from_file(path)
        assert regions.codes == frozenset({"78701", "78702"})

    def test_from_settings_comma_list(self):
        cfg = Settings(pulse_region_allowlist="78701, 78702", pulse_region_allowlist_file="")
        assert RegionFilter.from_settings(cfg).codes == frozenset({"78701", "78702"})

    def test_from_settings_file(self, tmp_path):
        path = tmp_path / "zips.txt"
        path.write_text("78745\n")
        cfg = Settings(pulse_region_allowlist="", pulse_region_allowlist_file=str(path))
        assert RegionFilter.from_settings(cfg).codes == frozenset({"78745"})

    def test_from_settings_counties(self):
        cfg = Settings(
            pulse_region_allowlist="",
            pulse_region_allowlist_file="",
            pulse_region_counties="Hays, Caldwell",
        )
        expected = {*AUSTIN_MSA_COUNTIES["Hays"], *AUSTIN_MSA_COUNTIES["Caldwell"]}
        assert RegionFilter.from_settings(cfg).codes == frozenset(expected)

    def test_from_settings_unknown_county_raises(self):
        cfg = Settings(
            pulse_region_allowlist="",
            pulse_region_allowlist_file="",
            pulse_region_counties="Harris",
        )
        with pytest.raises(ValueError, match="Unknown county"):
            RegionFilter.from_settings(cfg)

    def test_from_settings_falls_back_to_austin(self):
        cfg = Settings(
            pulse_region_allowlist="", pulse_region_allowlist_file="", pulse_region_counties=""
        )
        assert len(RegionFilter.from_settings(cfg)) == len(AUSTIN_MSA_ZIPS)
