"""Attendance automation for the CERAGON eHRMS portal."""

__version__ = "1.0.0"
