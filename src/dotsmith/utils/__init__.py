"""Shared utilities: errors, logging, configuration, paths and file helpers."""
