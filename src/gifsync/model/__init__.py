"""Typed models for desired tunnels, observed interfaces and settings."""
