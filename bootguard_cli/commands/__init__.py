"""Bootguard CLI commands."""
