#!/usr/bin/env python3
"""
SimpleBot Terminal Chat Launcher
Local rule profile by default; pass --remote to chat through the gateway
"""

from simplebot.cli import main

if __name__ == "__main__":
    main()
