"""Tests for the helm-api command line tool."""
