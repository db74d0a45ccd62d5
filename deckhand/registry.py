from typing import Type, Dict, TYPE_CHECKING

from deckhand.exceptions import NoSuchScheduler

if TYPE_CHECKING:
    from .core.adapters.abstract import Adapter  # noqa:F401
    from .core.schedulers.abstract import AbstractScheduler  # noqa:F401


class AdapterRegistry:
    """
    A registry of adapters which consume specific data sources to configure deckhand models.
    """

    def __init__(self) -> None:
        self.adapters: Dict[str, Dict[str, Type["Adapter"]]] = {}

    def register(self, model_name: str, source: str, adapter_class: Type["Adapter"]) -> None:
        """
        Register a new Adapter class with a model and a source.

        :param model_name: the name of a deckhand model
        :param source: the identifier for the config source
        :param adapter_class: the class of the source -> model adapter to use
        """
        if model_name not in self.adapters:
            self.adapters[model_name] = {}
        self.adapters[model_name][source] = adapter_class

    def get(self, model_name: str, source: str) -> Type["Adapter"]:
        """
        Return the source -> model Adapter class to use for the source ``source`` and
        model ``model_name``.
        """
        return self.adapters[model_name][source]


class SchedulerRegistry:
    """
    A registry of scheduler backends, keyed by the ``type`` of the ``scheduler:`` section
    of the application file.
    """

    def __init__(self) -> None:
        self.schedulers: Dict[str, Type["AbstractScheduler"]] = {}

    def register(self, scheduler_type: str, scheduler_class: Type["AbstractScheduler"]) -> None:
        self.schedulers[scheduler_type] = scheduler_class

    def get(self, scheduler_type: str) -> Type["AbstractScheduler"]:
        try:
            return self.schedulers[scheduler_type]
        except KeyError:
            raise NoSuchScheduler(scheduler_type)


importer_registry: AdapterRegistry = AdapterRegistry()
scheduler_registry: SchedulerRegistry = SchedulerRegistry()
