"""
Background asyncio loop
bleak needs a running event loop; this hosts one in a daemon thread so that
synchronous callers (Flask handlers, the console) can hand work to it.
"""

import asyncio
import threading
from concurrent.futures import Future
from typing import Optional


class LoopRunner:
    """Owns an event loop running in its own thread"""

    def __init__(self):
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the asyncio event loop in a separate thread"""
        if self.running:
            return
        ready = threading.Event()

        def run():
            self.loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self.loop)
            self.loop.call_soon(ready.set)
            self.loop.run_forever()

        self._thread = threading.Thread(target=run, name="ble-loop", daemon=True)
        self._thread.start()
        ready.wait()

    def submit(self, coro) -> Future:
        """Schedule a coroutine on the loop without waiting for it"""
        if not self.running:
            coro.close()
            raise RuntimeError("event loop is not running")
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro, timeout: float = 30.0):
        """Run a coroutine on the loop and wait for its result"""
        return self.submit(coro).result(timeout=timeout)

    def stop(self):
        if not self.running:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join()
        self.loop.close()
        self._thread = None
        self.loop = None
