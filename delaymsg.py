#!/usr/bin/env python3

# Timestamped status messages, and a helper to only show a status message
# every few seconds while working through a long loop

from datetime import datetime, timedelta
import sys
if sys.version_info >= (3, 11): from datetime import UTC
else: import datetime as datetime_fix; UTC=datetime_fix.timezone.utc

def now():
    return datetime.now(UTC).replace(tzinfo=None)

class DelayMsg:
    def __init__(self, delay=5, file=None):
        self.file = file
        self.delay = delay
        self.next_msg = now()

    def __call__(self, value):
        self.show(value)

    def __enter__(self):
        return self

    def __exit__(self, *args, **kargs):
        pass

    def show(self, value):
        # Only output the message if enough time has passed since the last one
        cur = now()
        if cur >= self.next_msg:
            show(value, file=self.file)
            while cur >= self.next_msg:
                self.next_msg += timedelta(seconds=self.delay)

def show(value, file=None):
    msg = f'{now().strftime("%d %H:%M:%S")}: {value}'
    print(msg, file=sys.stdout if file is None else file, flush=True)
    return msg

if __name__ == '__main__':
    print("This module is not meant to be run directly")
