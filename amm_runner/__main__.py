"""Allow `python -m amm_runner`."""

import sys

from amm_runner.cli import main

sys.exit(main())
