"""
geo.py — Region-code normalization and the geographic allow-list.

Every source adapter checks region codes against a RegionFilter before it
builds a record, so nothing outside the configured metropolitan area is ever
persisted. Codes are compared as 5-character, zero-padded strings.

Usage:
    from pulse_shared.geo import RegionFilter, normalize_region_code, extract_zip

    regions = RegionFilter.from_settings()
    regions.contains("78701")               # True
    regions.contains(8701)                  # False (normalizes to "08701")
    normalize_region_code("501")            # "00501"
    extract_zip("Zip Code: 78701")          # "78701"
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

import structlog

from pulse_shared.config import Settings, settings as default_settings
from pulse_shared.constants import AUSTIN_MSA_COUNTIES, AUSTIN_MSA_ZIPS

log = structlog.get_logger(__name__)

_ZIP_RE = re.compile(r"(?<!\d)(\d{5})(?!\d)")


# ---------------------------------------------------------------------------
# Code helpers
# ---------------------------------------------------------------------------

def normalize_region_code(code: str | int | None) -> str | None:
    """
    Return a 5-character zero-padded region code, or None if *code* is not a
    1–5 digit number.

    Examples:
        "78701"   -> "78701"
        " 501 "   -> "00501"
        501       -> "00501"
        "78701.0" -> "78701"   (spreadsheet-style float text)
        "TX"      -> None
    """
    if code is None:
        return None
    text = str(code).strip()
    if text.endswith(".0"):
        text = text[:-2]
    if not text.isdigit() or len(text) > 5:
        return None
    return text.zfill(5)


def extract_zip(region: str | None) -> str | None:
    """Pull the first standalone 5-digit run out of a free-text region label."""
    if not region:
        return None
    m = _ZIP_RE.search(region)
    return m.group(1) if m else None


# ---------------------------------------------------------------------------
# Allow-list
# ---------------------------------------------------------------------------

class RegionFilter:
    """Fixed set of region codes that the pipeline is allowed to persist."""

    def __init__(self, codes: Iterable[str | int]) -> None:
        normalized = {normalize_region_code(c) for c in codes}
        normalized.discard(None)
        self._codes: frozenset[str] = frozenset(normalized)  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._codes)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, (str, int)) and self.contains(code)

    def __repr__(self) -> str:
        return f"RegionFilter({len(self._codes)} codes)"

    @property
    def codes(self) -> frozenset[str]:
        return self._codes

    def contains(self, code: str | int | None) -> bool:
        normalized = normalize_region_code(code)
        return normalized is not None and normalized in self._codes

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def austin_msa(cls, counties: Iterable[str] | None = None) -> RegionFilter:
        """The compiled Austin MSA list, optionally restricted to some counties."""
        if counties is None:
            return cls(AUSTIN_MSA_ZIPS)
        wanted = {c.strip().title() for c in counties}
        unknown = wanted - AUSTIN_MSA_COUNTIES.keys()
        if unknown:
            raise ValueError(f"Unknown county: {', '.join(sorted(unknown))}")
        return cls(z for name in wanted for z in AUSTIN_MSA_COUNTIES[name])

    @classmethod
    def from_file(cls, path: str | Path) -> RegionFilter:
        """One code per line; blank lines and '#' comments are ignored."""
        lines = Path(path).read_text(encoding="utf-8").splitlines()
        codes = [ln.split("#", 1)[0].strip() for ln in lines]
        return cls(c for c in codes if c)

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> RegionFilter:
        """
        Build the filter from configuration.

        Precedence: PULSE_REGION_ALLOWLIST (comma list), then
        PULSE_REGION_ALLOWLIST_FILE, then PULSE_REGION_COUNTIES (Austin MSA
        counties), then the full compiled Austin MSA list.
        """
        cfg = cfg or default_settings
        if cfg.pulse_region_allowlist.strip():
            region_filter = cls(
                c.strip() for c in cfg.pulse_region_allowlist.split(",") if c.strip()
            )
            origin = "env"
        elif cfg.pulse_region_allowlist_file.strip():
            region_filter = cls.from_file(cfg.pulse_region_allowlist_file.strip())
            origin = cfg.pulse_region_allowlist_file
        elif cfg.pulse_region_counties.strip():
            region_filter = cls.austin_msa(
                c for c in cfg.pulse_region_counties.split(",") if c.strip()
            )
            origin = "counties"
        else:
            region_filter = cls.austin_msa()
            origin = "austin_msa"
        log.debug("region_filter_loaded", origin=origin, regions=len(region_filter))
        return region_filter
