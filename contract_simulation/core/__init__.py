"""State model, value domains and bounded exploration."""
