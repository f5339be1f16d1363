"""Positive and negative simulation examples."""
