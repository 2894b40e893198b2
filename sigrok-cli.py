#!/usr/bin/env python3
"""
sigrok-cli: command-line front end for sigrok

Acquire samples from logic analyzers and other supported hardware, replay
capture files, run protocol decoder stacks on the sample stream, and inspect
drivers, devices and decoders.

Examples
--------
  sigrok-cli.py --scan
  sigrok-cli.py -d demo --samples 8 -O hex
  sigrok-cli.py -i capture.sr -P uart:baudrate=115200:rx=D0 -A uart=rx-data
  sigrok-cli.py -P i2c --show

Requires the libsigrok Python bindings (sigrok.core). Protocol decoding
additionally needs libsigrokdecode; set SIGROKDECODE_DIR to add a decoder
directory. SIGROKCLI_LOGLEVEL sets the default log level (0-5).
"""

from __future__ import annotations

import sys

from sigrokcli.cli import main


if __name__ == "__main__":
    sys.exit(main())
