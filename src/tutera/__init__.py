"""Tutera - command resolution and state reconciliation for Crestron Home."""

__version__ = "0.1.0"
