"""
Engine 진입점

실행 방법:
    python -m engine backfill --tenant acme
    python -m engine sync_entity --tenant acme --entity-type Invoice
"""

import sys

from engine.bootstrap import main

if __name__ == "__main__":
    sys.exit(main())
