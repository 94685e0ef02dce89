"""
pulse_pipeline.pipelines — one async run(conn, ...) per stage.

  zillow   -> value_observations
  census   -> demographic_observations
  redfin   -> market_observations
  metrics  -> derived_metrics
"""
