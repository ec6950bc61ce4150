"""Run the vectorAdd dispatch: ``python -m pydotcl``."""

import sys

from pydotcl.runner import main

sys.exit(main())
