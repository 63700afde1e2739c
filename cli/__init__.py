"""
DropForge command line interface.
"""

__version__ = "1.0.0"
