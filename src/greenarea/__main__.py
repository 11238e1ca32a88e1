import sys

from greenarea.cli import main

sys.exit(main())
