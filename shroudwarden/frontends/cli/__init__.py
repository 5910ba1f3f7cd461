"""
CLI Frontend for Shroudwarden
"""

from .main import ShroudwardenCLI, main

__all__ = [
    'ShroudwardenCLI',
    'main'
]
