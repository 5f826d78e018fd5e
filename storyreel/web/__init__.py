"""HTTP surface of the workflow."""
