"""``python -m kml_feedmap`` entry point."""

import sys

from kml_feedmap.cli import main

sys.exit(main())
