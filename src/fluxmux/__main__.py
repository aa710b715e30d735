import sys

from fluxmux.cli import main

sys.exit(main())
