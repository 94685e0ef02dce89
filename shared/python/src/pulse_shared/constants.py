"""
constants.py — shared constants used across the pipeline.

Region allow-lists, source column codes, sentinel values and typed literals
are defined here so source adapters, metrics and tests agree on them.
"""

from __future__ import annotations

from typing import Final, Literal

# ---------------------------------------------------------------------------
# Austin-Round Rock-Georgetown MSA zip codes by county (USPS / ZCTA crosswalk)
# ---------------------------------------------------------------------------
TRAVIS_ZIPS: Final[tuple[str, ...]] = (
    "73301", "73344",
    "78610", "78613", "78617", "78621", "78641", "78645", "78652", "78653",
    "78660", "78664", "78681",
    "78701", "78702", "78703", "78704", "78705",
    "78712", "78717", "78719", "78721", "78722", "78723", "78724", "78725",
    "78726", "78727", "78728", "78729", "78730", "78731", "78732", "78733",
    "78734", "78735", "78736", "78737", "78738", "78739", "78741", "78742",
    "78744", "78745", "78746", "78747", "78748", "78749", "78750", "78751",
    "78752", "78753", "78754", "78756", "78757", "78758", "78759",
)

WILLIAMSON_ZIPS: Final[tuple[str, ...]] = (
    "76527", "76537", "76574", "76578",
    "78613", "78615", "78626", "78628", "78630", "78633", "78634", "78641",
    "78642", "78646", "78660", "78664", "78665", "78681", "78717",
    "78728", "78729", "78750",
)

HAYS_ZIPS: Final[tuple[str, ...]] = (
    "78610", "78619", "78620", "78623", "78640", "78652", "78656", "78666",
    "78676", "78737",
)

BASTROP_ZIPS: Final[tuple[str, ...]] = (
    "78602", "78612", "78617", "78621", "78650", "78653", "78659", "78662",
)

CALDWELL_ZIPS: Final[tuple[str, ...]] = (
    "78616", "78632", "78638", "78644", "78648", "78655", "78656", "78661",
)

AUSTIN_MSA_COUNTIES: Final[dict[str, tuple[str, ...]]] = {
    "Travis": TRAVIS_ZIPS,
    "Williamson": WILLIAMSON_ZIPS,
    "Hays": HAYS_ZIPS,
    "Bastrop": BASTROP_ZIPS,
    "Caldwell": CALDWELL_ZIPS,
}

# Several zips straddle county lines, hence the set union
AUSTIN_MSA_ZIPS: Final[frozenset[str]] = frozenset(
    z for zips in AUSTIN_MSA_COUNTIES.values() for z in zips
)

# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------
StageName = Literal["zillow", "census", "redfin", "metrics"]

STAGE_ORDER: Final[tuple[StageName, ...]] = ("zillow", "census", "redfin", "metrics")

# ---------------------------------------------------------------------------
# Zillow research CSVs: value column -> path under zillow_base_url
# ---------------------------------------------------------------------------
ZILLOW_VARIANTS: Final[dict[str, str]] = {
    "home_value": "zhvi/Zip_zhvi_uc_sfrcondo_tier_0.33_0.67_sm_sa_month.csv",
    "single_family_value": "zhvi/Zip_zhvi_uc_sfr_tier_0.33_0.67_sm_sa_month.csv",
    "condo_value": "zhvi/Zip_zhvi_uc_condo_tier_0.33_0.67_sm_sa_month.csv",
    "rent_value": "zori/Zip_zori_uc_sfrcondomfr_sm_sa_month.csv",
}

ZILLOW_LOOKBACK_YEARS: Final[int] = 10

# ---------------------------------------------------------------------------
# Census ACS 5-year variables
# ---------------------------------------------------------------------------
CENSUS_GEO_COLUMN: Final[str] = "zip code tabulation area"

CENSUS_VARIABLES: Final[dict[str, str]] = {
    "population": "B01003_001E",
    "median_income": "B19013_001E",
    "median_age": "B01002_001E",
    "tenure_total": "B25003_001E",
    "owner_occupied": "B25003_002E",
    "poverty_total": "B17001_001E",
    "below_poverty": "B17001_002E",
    "education_total": "B15003_001E",
    "bachelors": "B15003_022E",
    "masters": "B15003_023E",
    "professional": "B15003_024E",
    "doctorate": "B15003_025E",
    "commute_total": "B08006_001E",
    "work_from_home": "B08006_017E",
    "housing_units": "B25001_001E",
    "households_total": "B11001_001E",
    "family_households": "B11001_002E",
    # Tenure by age of householder (owner-occupied cells)
    "owners_total": "B25007_002E",
    "owners_25_34": "B25007_004E",
    "owners_35_44": "B25007_005E",
    "owners_75_84": "B25007_010E",
    "owners_85_plus": "B25007_011E",
}

# Annotation values the ACS API returns in place of an estimate
CENSUS_SENTINELS: Final[frozenset[float]] = frozenset({
    -222222222.0,
    -333333333.0,
    -555555555.0,
    -666666666.0,
    -888888888.0,
    -999999999.0,
})

CENSUS_VINTAGE_FALLBACKS: Final[int] = 4

# ---------------------------------------------------------------------------
# Redfin market tracker
# ---------------------------------------------------------------------------
REDFIN_ZIP_REGION_TYPES: Final[frozenset[str]] = frozenset({"zip code", "zip_code"})
REDFIN_ZIP_REGION_TYPE_ID: Final[str] = "2"

# property_type_id -> property_type label
REDFIN_PROPERTY_TYPES: Final[dict[str, str]] = {
    "-1": "All Residential",
    "1": "Single Family Residential",
}

REDFIN_LOOKBACK_YEARS: Final[int] = 5

# ---------------------------------------------------------------------------
# Text values that mean "no value"
# ---------------------------------------------------------------------------
NULL_TOKENS: Final[frozenset[str]] = frozenset({"", "n/a", "na", "nan", "null", "none", "-"})
