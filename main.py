#!/usr/bin/env python3
"""synchron - run from a source checkout."""

import sys

from synchron.main import main

if __name__ == '__main__':
    sys.exit(main())
