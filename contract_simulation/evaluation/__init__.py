"""Predicate evaluation against recorded states."""
