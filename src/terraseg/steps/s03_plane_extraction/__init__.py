"""Step 03: per-cluster plane extraction and consolidation."""
