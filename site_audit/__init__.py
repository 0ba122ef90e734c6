# site_audit/__init__.py
"""
SiteAudit package initializer.
Defines package version; the CLI lives in :mod:`site_audit.cli`.
"""
__version__ = "0.1.0"

__all__ = ["__version__"]
