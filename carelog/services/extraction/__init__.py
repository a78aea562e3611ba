"""Pure extraction components: name matching, response recovery, geometry
fallback and row shaping. Nothing in this package touches the database or
reads settings."""
