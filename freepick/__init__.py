"""
FreePick - share your open calendar time as plain text.
"""

__version__ = "0.3.0"
