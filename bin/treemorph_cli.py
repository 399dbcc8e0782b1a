#!/usr/bin/env python
"""
Command-line interface for the tree morph preview.

This script provides a CLI wrapper around the run_treemorph function, allowing all
parameters to be controlled via command-line arguments.

Examples:
    # Run with default settings (manual toggle with the space bar)
    python treemorph_cli.py

    # Start with hand gesture control, printing status changes
    python treemorph_cli.py --gesture --log-status

    # A lighter scene, reproducible
    python treemorph_cli.py --foliage-count 5000 --seed 42

    # Print periodic gesture readings
    python treemorph_cli.py --gesture --log-gesture
"""

import argh

from treemorph.script_utils import treemorph_cli

if __name__ == "__main__":
    argh.dispatch_command(treemorph_cli)
