import sys

from camcal.cli import main

sys.exit(main())
