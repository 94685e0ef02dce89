"""
pulse_pipeline.sources — data source adapters.

  ZillowSource  — Zillow Research ZHVI / ZORI zip CSVs (whole-body)
  CensusSource  — Census ACS 5-year API, newest available vintage
  RedfinSource  — Redfin zip market tracker, streamed gzip TSV
"""
