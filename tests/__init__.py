"""Tests for helm-api."""
