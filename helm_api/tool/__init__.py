"""Command line tool for helm-api."""
