#!/usr/bin/env python3
"""
task-relay CLI

Batch jobs that move task data between Todoist and Google.

Usage:
    ./task-relay.py report       # Todoist tasks -> dated PDF in Google Drive
    ./task-relay.py sync         # Google Tasks list -> Todoist

Examples:
    # Build today's report using a non-default config file
    ./task-relay.py report --config ~/task-relay.yaml

    # Move tasks with debug logging
    ./task-relay.py sync --verbose
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from task_relay import main

if __name__ == '__main__':
    sys.exit(main())
