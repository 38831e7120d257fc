import sys

from otpvault.cli import main

sys.exit(main())
