"""Top-N item prediction writer."""
