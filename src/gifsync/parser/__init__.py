"""Parsers for command output."""
