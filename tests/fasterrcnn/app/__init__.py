"""Tests for the HTTP service."""
