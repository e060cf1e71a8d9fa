import sys

from sysmonitor.app import main

sys.exit(main())
