"""HTTP surface for the pipeline."""
