"""Smaller per-test extensions wired up by the pytest plugin."""
