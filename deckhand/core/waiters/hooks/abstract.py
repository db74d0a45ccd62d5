import logging
from typing import Any, Dict, Optional


class AbstractWaiterHook:
    """
    Subclass this and override the per-state methods to react to each iteration of a
    :py:class:`deckhand.core.waiters.HookedWaiter`.

    ``obj`` is the model we're waiting on; ``logger`` is where we report what we see.
    """

    def __init__(self, obj: Any, logger: logging.Logger = None) -> None:
        self.obj = obj
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def setup(self, status: str, response: Optional[Dict[str, Any]], num_attempts: int, **kwargs) -> None:
        """
        Do any necessary setup on the waiter iteration before we've done our per-state processing.   This will
        get called once per iteration.
        """
        pass

    def waiting(self, status: str, response: Optional[Dict[str, Any]], num_attempts: int, **kwargs) -> None:
        pass

    def success(self, status: str, response: Optional[Dict[str, Any]], num_attempts: int, **kwargs) -> None:
        pass

    def failure(self, status: str, response: Optional[Dict[str, Any]], num_attempts: int, **kwargs) -> None:
        pass

    def error(self, status: str, response: Optional[Dict[str, Any]], num_attempts: int, **kwargs) -> None:
        pass

    def timeout(self, status: str, response: Optional[Dict[str, Any]], num_attempts: int, **kwargs) -> None:
        pass

    def cancelled(self, status: str, response: Optional[Dict[str, Any]], num_attempts: int, **kwargs) -> None:
        pass

    def cleanup(self, status: str, response: Optional[Dict[str, Any]], num_attempts: int, **kwargs) -> None:
        """
        Do any necessary cleanup after the waiter iteration has completed and we've done our per-state
        processing.  This will get called once per iteration.
        """
        pass

    def __call__(self, status: str, response: Optional[Dict[str, Any]], num_attempts: int, **kwargs) -> None:
        """
        args:
            * 'status': the current state of the waiter. One of 'waiting', 'success', 'failure', 'error',
              'timeout' or 'cancelled'.
            * 'response': the response from the last invocation of our waiter's operation
            * 'num_attempts': the current iteration number
        """
        self.setup(status, response, num_attempts, **kwargs)
        handler = getattr(self, status, None)
        if handler is not None:
            handler(status, response, num_attempts, **kwargs)
        self.cleanup(status, response, num_attempts, **kwargs)
