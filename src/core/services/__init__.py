"""Console workflows (one module per console area)."""
