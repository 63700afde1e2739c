"""
DropForge CLI Commands Package
"""

__all__ = ['collection', 'config']
