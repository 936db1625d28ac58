"""Training/evaluation drivers and run pipelines."""
