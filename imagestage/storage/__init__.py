"""Filesystem helpers for stored images."""
