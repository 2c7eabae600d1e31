#!/usr/bin/env python3
"""
SimpleBot Gateway Launcher
Starts the realtime gateway (PORT defaults to 5000, CLIENT_ORIGIN to allow-all)
"""

from simplebot.server import main

if __name__ == "__main__":
    main()
