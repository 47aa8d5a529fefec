"""Allow ``python -m tokenvault``."""

import sys

from .cli import main

sys.exit(main())
