"""HTTP surface of the generation engine."""
