from copy import copy
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from deckhand.exceptions import DeploymentCancelled, DeploymentFailed, DeploymentTimedOut


logger = logging.getLogger(__name__)


#: Acceptor states
WAITING = 'waiting'
SUCCESS = 'success'
FAILURE = 'failure'
ERROR = 'error'
TIMEOUT = 'timeout'
CANCELLED = 'cancelled'


class HookedWaiter:
    """
    A HookedWaiter repeatedly calls ``operation_method`` until ``acceptor`` says we're done.  It is
    modelled on a boto3 Waiter, with these differences:

    * you can give it a list of callables that will be executed on each iteration.  This is useful for
      many things like giving user feedback while we're waiting.
    * it gives up after ``timeout`` seconds of wall clock time instead of after a number of attempts.
      The deadline is checked before every call to ``operation_method`` and we never sleep past it.
      ``timeout=None`` means wait forever.
    * it can be cancelled from another thread by setting ``cancel_event``.  We check the event before
      every call to ``operation_method``, and the default sleep wakes up as soon as it is set.
    * transient errors from ``operation_method`` don't end the wait until we see more than
      ``max_errors`` of them in a row.
    * ``clock`` and ``sleep`` are injectable so tests don't have to wait for real.

    ``acceptor`` is a callable with this prototype::

        acceptor(response) -> (state, reason)

    where ``state`` is one of ``'waiting'``, ``'success'`` or ``'failure'``, and ``reason`` explains a
    ``'failure'``.

    Hooks have this prototype::

        waiter_hook(state, response, num_attempts, **kwargs)

    Where:

    args:
        * 'state': the current state of the waiter. One of 'waiting', 'success', 'failure', 'error',
          'timeout' or 'cancelled'.
        * 'response': the response from the last invocation of our operation, or ``None``
        * 'num_attempts': the current iteration number

    kwargs:
        * 'name': the name of the waiter
        * 'Delay': the sleep amount in seconds
        * 'Timeout': how long we'll wait before timing out, or ``None``
        * 'Elapsed': how many seconds we've been waiting

    Plus the kwargs we pass to ``operation_method``.
    """

    def __init__(
        self,
        name: str,
        operation_method: Callable[..., Dict[str, Any]],
        acceptor: Callable[[Dict[str, Any]], Any],
        delay: float = 5,
        timeout: Optional[float] = None,
        max_errors: int = 5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = None,
        cancel_event: threading.Event = None
    ) -> None:
        self.name = name
        self._operation_method = operation_method
        self.acceptor = acceptor
        self.delay = delay
        self.timeout = timeout
        self.max_errors = max_errors
        self.clock = clock
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.sleep = sleep if sleep is not None else self.cancel_event.wait

    def wait(self, hooks: List[Callable] = None, **kwargs) -> Dict[str, Any]:
        """
        Wait until we reach a terminal state.

        Raises:
            DeploymentFailed: the acceptor declared failure, or ``operation_method`` kept failing
            DeploymentTimedOut: we waited longer than ``timeout`` seconds
            DeploymentCancelled: somebody set our ``cancel_event``

        Returns:
            The response that the acceptor declared success on.
        """
        hooks = hooks if hooks else []
        hook_kwargs = copy(kwargs)
        hook_kwargs['name'] = self.name
        hook_kwargs['Delay'] = self.delay
        hook_kwargs['Timeout'] = self.timeout
        start = self.clock()
        num_attempts = 0
        num_errors = 0
        response: Optional[Dict[str, Any]] = None

        def fire(state: str) -> None:
            hook_kwargs['Elapsed'] = self.clock() - start
            for hook in hooks:
                hook(state, response, num_attempts, **hook_kwargs)

        while True:
            if self.cancel_event.is_set():
                fire(CANCELLED)
                raise DeploymentCancelled(
                    f'{self.name}: cancelled after {num_attempts} attempts', last_response=response
                )
            if self.timeout is not None and self.clock() - start >= self.timeout:
                fire(TIMEOUT)
                raise DeploymentTimedOut(
                    f'{self.name}: timed out after {self.timeout} seconds', last_response=response
                )
            num_attempts += 1
            try:
                response = self._operation_method(**kwargs)
            except (ClientError, BotoCoreError) as e:
                num_errors += 1
                logger.warning('%s: attempt %d failed: %s', self.name, num_attempts, e)
                fire(ERROR)
                if num_errors > self.max_errors:
                    raise DeploymentFailed(
                        f'{self.name}: giving up after {num_errors} consecutive errors: {e}', last_response=response
                    ) from e
            else:
                num_errors = 0
                current_state, reason = self.acceptor(response)
                fire(current_state)
                if current_state == SUCCESS:
                    logger.debug('%s: waiting complete, matched the success state.', self.name)
                    return response
                if current_state == FAILURE:
                    raise DeploymentFailed(
                        f'{self.name}: encountered a terminal failure state: {reason}', last_response=response
                    )
            delay = self.delay
            if self.timeout is not None:
                # Never sleep past the deadline
                delay = min(delay, self.timeout - (self.clock() - start))
            if delay > 0:
                self.sleep(delay)
