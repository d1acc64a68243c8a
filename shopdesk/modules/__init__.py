"""
ShopDesk Modules
================

Flask blueprint modules for store administration.
"""

__all__ = ['products', 'newsletter']
