import sys

from epifriend.cli import main

sys.exit(main())
