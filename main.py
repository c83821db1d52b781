#!/usr/bin/env python3
"""
DMG Game Boy Emulator launcher.

Usage:
    python main.py <rom_file> [options]

Same as ``python -m dmgcore``; see ``--help`` for the options.
"""

import sys

from dmgcore.__main__ import main

if __name__ == "__main__":
    sys.exit(main())
