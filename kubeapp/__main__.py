"""Entry point for `python -m kubeapp`.

Usage:
    python -m kubeapp
"""

from __future__ import annotations

import asyncio

from kubeapp.app import main

asyncio.run(main())
