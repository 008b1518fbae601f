"""Domain models and pure pipeline logic."""
