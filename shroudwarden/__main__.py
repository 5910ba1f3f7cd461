#!/usr/bin/env python3
"""
Entry point for Shroudwarden

Usage: python -m shroudwarden [command]
"""

import sys

from shroudwarden.frontends.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
