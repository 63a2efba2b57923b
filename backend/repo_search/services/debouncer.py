import asyncio
import inspect
from typing import Any, Callable, Optional

from loguru import logger


class Debouncer:
    """
    Delays an action until calls to ``schedule`` have been quiet for ``delay``
    seconds, then runs it once with the last scheduled argument.

    Each instance owns its own timer task, so debouncers never interfere with
    one another.
    """

    def __init__(self, action: Callable[[Any], Any], delay: float = 0.5):
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self.action = action
        self.delay = delay
        self._timer: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def schedule(self, value: Any) -> None:
        """Restart the timer for ``value``. Must be called from a running loop."""
        self.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._fire_later(value))

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _fire_later(self, value: Any) -> None:
        await asyncio.sleep(self.delay)
        # detach before running, so a later schedule() can't cancel the action
        self._timer = None
        try:
            result = self.action(value)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("[debounce] action failed")
