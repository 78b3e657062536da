"""
Invoice extraction from scanned documents into Google Sheets.
"""

__version__ = "1.0.0"
