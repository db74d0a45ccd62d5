from typing import Dict, Any, List, Union, TYPE_CHECKING

from deckhand.exceptions import (
    ConfigProcessingFailed,
    SkipConfigProcessing as BaseSkipConfigProcessing
)

if TYPE_CHECKING:
    from deckhand.config import Config


class AbstractConfigProcessor:
    """
    A base class for processors for our application file.  These processors modify the contents of the
    application file in some way before the rest of ``deckhand`` consumes it.

    Args:
        config: the :py:class:`deckhand.config.Config` object we're working with
        context: a dict of additional data that we might use when processing the config
    """

    class SkipConfigProcessing(BaseSkipConfigProcessing):
        pass

    class ProcessingFailed(ConfigProcessingFailed):
        pass

    def __init__(self, config: "Config", context: Dict[str, Any]):
        #: The :py:class:`deckhand.config.Config` we are processing
        self.config = config
        #: Any additional context our caller wished to give us for our processing
        self.context = context
        #: Replacements we make in the names of the things we look up, e.g. ``${env.{app-id}_PASSWORD}``
        self.deckhand_lookups: Dict[str, str] = {
            '{app-id}': config.app_id,
        }

    def replace(self, obj: Union[List, Dict], key: Union[str, int], value: str, section_name: str) -> None:
        """
        Perform string replacements on ``value``, a string value in our application file.

        Args:
            obj: a list or dict from our application file
            key: the name of the key (if ``obj`` is a dict) or index (if ``obj`` is a list``) in ``obj``
            value: our string value from ``obj[key]``
            section_name: the top level section ``obj`` came from
        """
        raise NotImplementedError

    def __process(self, obj: Any, key: Union[str, int], value: Any, section_name: str) -> None:
        """
        If ``value`` is a list or a dictionary, recurse into it.  If it is a string, do the string
        replacements on it.  Otherwise (an int, float or bool), do nothing.
        """
        if isinstance(value, dict):
            self.__process_dict(value, section_name)
        elif isinstance(value, (list, tuple)):
            self.__process_list(value, section_name)
        elif isinstance(value, str):
            self.replace(obj, key, value, section_name)

    def __process_list(self, obj: List[Any], section_name: str) -> None:
        for i, value in enumerate(obj):
            self.__process(obj, i, value, section_name)

    def __process_dict(self, obj: Dict[str, Any], section_name: str) -> None:
        for key, value in list(obj.items()):
            self.__process(obj, key, value, section_name)

    def process(self) -> None:
        """
        This is the method that :py:class:`ConfigProcessor` will execute as it loops through known
        processors.

        Run our replacements on everything in the sections named by
        :py:attr:`deckhand.config.Config.processable_sections`, saving the results in
        :py:attr:`deckhand.config.Config.cooked`.

        Raises:
            AbstractConfigProcessor.ProcessingFailed: something went wrong when we tried to run
        """
        cooked = self.config.cooked
        for section_name in self.config.processable_sections:
            if section_name in cooked:
                self.__process(cooked, section_name, cooked[section_name], section_name)
