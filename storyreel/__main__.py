"""Allow running the CLI as: python -m storyreel"""

import sys

from .cli.main import main

sys.exit(main())
