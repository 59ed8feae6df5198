import sys

from torquepress.cli import main

sys.exit(main())
