"""
Shroudwarden - supervisor for the Enshrouded dedicated server under Wine.
"""

__version__ = "0.1.0"
