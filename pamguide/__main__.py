import sys

from pamguide.main import main

sys.exit(main())
