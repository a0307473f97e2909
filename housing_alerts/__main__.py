"""Allow ``python -m housing_alerts``."""

import sys

from housing_alerts.main import main

if __name__ == "__main__":
    sys.exit(main())
