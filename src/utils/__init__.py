"""Utilities package for the Restaurant POS application."""
