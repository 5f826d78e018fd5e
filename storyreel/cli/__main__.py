"""Allow running CLI as: python -m storyreel.cli"""

import sys

from .main import main

sys.exit(main())
