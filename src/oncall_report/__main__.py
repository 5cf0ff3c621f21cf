#!/usr/bin/env python3
"""
oncall-report - Main entry point

Allows running the CLI with ``python -m oncall_report``.
"""

from oncall_report.cli import main

if __name__ == "__main__":
    main()
