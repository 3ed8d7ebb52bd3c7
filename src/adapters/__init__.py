"""Adapters connecting the core pipeline to storage, HTTP, config and event streams."""
