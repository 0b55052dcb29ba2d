"""Allow running the package as a module: python -m waha_monitor."""

import sys

from waha_monitor.main import main

if __name__ == "__main__":
    sys.exit(main())
