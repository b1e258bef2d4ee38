"""Evidence-anchored fact identity and validation engine."""
