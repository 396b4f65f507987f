"""Durable execution engine for node/connection workflow graphs."""
