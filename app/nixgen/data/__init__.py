"""Bundled data files for nixgen."""
