"""
slotboard - interviewer availability board backed by a spreadsheet.
"""

__version__ = "0.1.0"
