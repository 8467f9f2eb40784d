"""Domain models for notekeeper."""
