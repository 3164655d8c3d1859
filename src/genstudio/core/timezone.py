"""Process-wide UTC.

Record timestamps are stored timezone-aware (UTC); retention cutoffs and the
daily quota window are computed in UTC. Importing this module pins the process
clock to match.
"""

import os
import time

os.environ["TZ"] = "UTC"
if hasattr(time, "tzset"):
    time.tzset()
