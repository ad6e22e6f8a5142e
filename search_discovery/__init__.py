"""Incremental search pagination and result-stream engine for a remote discovery service."""
