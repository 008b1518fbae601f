"""Adapters implementing core ports and feeding the recorder."""
