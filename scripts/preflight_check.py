#!/usr/bin/env python3
import sys
import os

print("Running preflight import check...")
try:
    # Placeholders so settings load; nothing connects at import time
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
    os.environ.setdefault("NS_BOT_TOKEN", "preflight")

    import suins_buddy.main
    print("Import suins_buddy.main: OK")

    import suins_buddy.core.scheduler
    print("Import suins_buddy.core.scheduler: OK")

    import suins_buddy.telegram.poller
    print("Import suins_buddy.telegram.poller: OK")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
