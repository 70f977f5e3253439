"""HTTP API for Tutera."""
