"""Tubely video upload and publishing service."""
