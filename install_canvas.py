#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Entry point for the Canvas LMS installer.
"""

import sys

from canvas_setup.main_installer import main

if __name__ == "__main__":
    sys.exit(main())
