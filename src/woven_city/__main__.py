"""Allow running as `python -m woven_city`."""

import sys

from .interface.cli import main

sys.exit(main())
