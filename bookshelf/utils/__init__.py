"""Helpers shared by the CLI: output rendering and input validation."""
