# -*- coding: utf-8 -*-
"""
run_analysis.py
===============

Thin wrapper around ``droughtwatch.cli`` for running from a checkout without
installing the package.  Settings come from ``config/config.yml``.

Example usage::

    python scripts/run_analysis.py --name "Marrakesh" --year 2023

"""

import sys
from pathlib import Path

# Ensure the project root is on the path so that package imports work when
# executing this script directly.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from droughtwatch.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
