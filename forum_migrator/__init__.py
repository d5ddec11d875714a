"""Forum content migration engine."""
