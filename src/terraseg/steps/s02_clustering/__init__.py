"""Step 02: spatial clustering."""
