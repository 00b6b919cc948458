import sys

from xrpl_payout.cli import main

sys.exit(main())
