"""Tutera services."""
