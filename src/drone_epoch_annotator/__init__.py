# src/drone_epoch_annotator/__init__.py
"""Drone CI plugin that annotates epoch timestamps in pull request diffs."""

__version__ = "0.1.0"
