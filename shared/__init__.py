"""
Sextant Shared Module
=====================

Configuration, logging, console presentation and report models shared by
every part of the Sextant toolkit.
"""

from shared.config import ConfigError, SextantConfig, SextantError

__all__ = ["ConfigError", "SextantConfig", "SextantError"]
