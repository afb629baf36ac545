"""Allow `python -m ibisdm` to start a dialogue."""

import asyncio
import sys

from ibisdm.main import main

sys.exit(asyncio.run(main()))
