from typing import Dict, Any, Callable, Tuple

from deckhand.exceptions import SchemaException as BaseSchemaException


class Adapter:
    """
    Given a dict of data from a data source, convert it to the data structures used to initialize a
    deckhand model.

    Minimally this means translating the source data into the data structure returned by an
    appropriate ``describe_*`` AWS API call.  In more complicated cases, there may be additional
    data returned also.
    """

    NONE: str = 'deckhand:required'

    class SchemaException(BaseSchemaException):
        """
        Raise this if data in the config source does not validate properly.
        """
        pass

    def __init__(self, data: Dict[str, Any], **kwargs) -> None:
        """
        ``data`` is the raw data from our source.
        """
        self.data: Dict[str, Any] = data if data else {}

    def set(
        self,
        data: Dict[str, Any],
        source_key: str,
        dest_key: str = None,
        default: Any = NONE,
        optional: bool = False,
        convert: Callable = None
    ) -> None:
        if dest_key is None:
            dest_key = source_key
        if optional:
            if source_key in self.data:
                data[dest_key] = self.data[source_key]
        else:
            if default != self.NONE:
                data[dest_key] = self.data.get(source_key, default)
            else:
                try:
                    data[dest_key] = self.data[source_key]
                except KeyError:
                    raise self.SchemaException(f'"{source_key}" is required')
        if dest_key in data and convert:
            data[dest_key] = convert(data[dest_key])

    def convert(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        This method is the meat of the adapter -- it is what takes ``self.data`` and returns the
        data structures needed to initialize our model.
        """
        raise NotImplementedError
