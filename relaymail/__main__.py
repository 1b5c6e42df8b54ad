import sys

from relaymail.cli.cli import main

sys.exit(main())
