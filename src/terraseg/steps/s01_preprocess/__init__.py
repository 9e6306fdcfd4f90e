"""Step 01: geometric filters."""
