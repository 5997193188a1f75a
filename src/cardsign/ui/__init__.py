"""User interface layer (CLI and shared workflows)."""
