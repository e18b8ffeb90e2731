"""Allow `python -m weather_consensus`."""

import sys

from weather_consensus.cli import main

if __name__ == "__main__":
    sys.exit(main())
