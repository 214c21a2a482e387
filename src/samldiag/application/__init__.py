"""Diagnostics engine: capability probing, prerequisite matrix, warnings."""
