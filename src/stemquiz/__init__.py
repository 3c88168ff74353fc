"""STEM quiz platform API."""
