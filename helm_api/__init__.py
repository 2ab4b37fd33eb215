"""
helm-api provisions, scales and removes isolated environments, each one a
helm release installed from its own copy of a starter chart.
"""

__all__ = [
    "manager",
    "chart_factory",
    "values",
    "backend",
    "manifest",
    "config",
    "bootstrap",
    "exceptions",
    "server",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
