"""
Sextant Output Module
======================

Console display and report generation for recovery results.
"""

from sextant.output.console import SextantConsoleOutput
from sextant.output.report import SextantReportGenerator

__all__ = [
    "SextantConsoleOutput",
    "SextantReportGenerator",
]
