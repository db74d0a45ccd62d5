from typing import Any, Optional


class LookupResult:
    """
    The result of asking AWS for a single object.  There are exactly three outcomes:

    * :py:class:`Found`: the object exists, and ``value`` holds it
    * :py:class:`NotFound`: AWS told us the object does not exist
    * :py:class:`TransportError`: we could not find out, and ``error`` holds the exception we got
    """

    found: bool = False
    value: Any = None
    error: Optional[Exception] = None

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}()'


class Found(LookupResult):

    found = True

    def __init__(self, value: Any) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f'Found({self.value!r})'


class NotFound(LookupResult):
    pass


class TransportError(LookupResult):

    def __init__(self, error: Exception) -> None:
        self.error = error

    def __repr__(self) -> str:
        return f'TransportError({self.error!r})'
