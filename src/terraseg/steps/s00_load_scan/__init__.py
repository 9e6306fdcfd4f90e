"""Step 00: range-frame ingestion."""
