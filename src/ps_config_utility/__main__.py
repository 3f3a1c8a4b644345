"""Allow running as ``python -m ps_config_utility``."""
import sys

from .cli import main

sys.exit(main())
