"""Core audit engine: models, scoring, orchestration and persistence."""
