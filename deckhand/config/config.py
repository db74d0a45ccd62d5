from copy import deepcopy
import os
from typing import Any, Dict, List

import yaml

from deckhand.exceptions import ConfigProcessingFailed
from .processors import ConfigProcessor


class Config:
    """
    This class reads an application file (``<app-id>.yml``) and handles the allowed variable
    substitutions in string values under the sections named in :py:attr:`processable_sections`.

    Allowed variable substitutions:

    * ``${env.<environment var>}``:  If the environment variable ``<environment var>`` exists in our
      environment (or in our ``env_file``), replace this with the value of that environment variable.

    The application id is the name of the file without its extension: ``/path/to/my-app.yml`` deploys
    the application ``my-app``.

    Args:
        filename: the path to our application file

    Keyword Args:
        raw_config: if supplied, use this as our config data instead of loading it from ``filename``
    """

    #: The list of sections in our config file that will be processed by our
    #: :py:class:`deckhand.config.processors.ConfigProcessor`
    processable_sections: List[str] = [
        'aws',
        'scheduler',
        'app',
        'additional_containers',
        'volumes',
    ]

    #: The name of the container built from our ``app:`` section
    APP_CONTAINER_NAME: str = 'app'

    @classmethod
    def new(cls, filename: str, raw_config: Dict[str, Any] = None, interpolate: bool = True, **kwargs) -> "Config":
        """
        Load ``filename`` and do our variable substitutions on it.  ``kwargs`` are the context for our
        processors: ``env_file``, ``import_env`` and ``ignore_missing_environment``.

        Raises:
            ConfigProcessingFailed: we couldn't read the file, or a substitution failed
        """
        config = cls(filename, raw_config=raw_config)
        if interpolate:
            processor = ConfigProcessor(config, kwargs)
            processor.process()
        return config

    def __init__(self, filename: str, raw_config: Dict[str, Any] = None) -> None:
        self.filename: str = filename
        self.__raw: Dict[str, Any] = raw_config if raw_config else self.load_config(filename)
        self.__cooked: Dict[str, Any] = deepcopy(self.__raw)

    @property
    def raw(self) -> Dict[str, Any]:
        """
        Returns:
            The pre-interpolated version of the raw YAML.
        """
        return self.__raw

    @property
    def cooked(self) -> Dict[str, Any]:
        """
        Returns:
            The post-interpolated version of the raw YAML.
        """
        return self.__cooked

    @property
    def app_id(self) -> str:
        return os.path.splitext(os.path.basename(self.filename))[0]

    @property
    def aws(self) -> Dict[str, Any]:
        return self.cooked.get('aws', None) or {}

    @property
    def scheduler(self) -> Dict[str, Any]:
        return self.cooked.get('scheduler', None) or {}

    @property
    def volumes(self) -> Dict[str, Any]:
        return self.cooked.get('volumes', None) or {}

    @property
    def containers(self) -> List[Dict[str, Any]]:
        """
        Return our container stanzas: the ``app:`` section first, named ``app``, then each of the
        ``additional_containers:``.

        ``additional_containers:`` may be either a list of stanzas that each have a ``name``, or a mapping
        of container name to stanza.
        """
        if 'app' not in self.cooked:
            raise ConfigProcessingFailed(f'{self.filename}: no "app:" section')
        app = dict(self.cooked['app'] or {})
        app['name'] = self.APP_CONTAINER_NAME
        containers = [app]
        additional = self.cooked.get('additional_containers', None) or []
        if isinstance(additional, dict):
            additional = [dict(stanza or {}, name=name) for name, stanza in additional.items()]
        for stanza in additional:
            if 'name' not in stanza:
                raise ConfigProcessingFailed(f'{self.filename}: every additional container needs a "name"')
            containers.append(stanza)
        return containers

    def load_config(self, filename: str) -> Dict[str, Any]:
        """
        Read our application file from disk and return it as parsed YAML.

        Args:
            filename: the path to our application file

        Return:
            The raw contents of the application file decoded to a dict
        """
        if not os.path.exists(filename):
            raise ConfigProcessingFailed("Couldn't find application file '{}'".format(filename))
        if not os.access(filename, os.R_OK):
            raise ConfigProcessingFailed(
                "Application file '{}' exists but is not readable".format(filename)
            )
        with open(filename, encoding='utf-8') as f:
            try:
                data = yaml.load(f, Loader=yaml.FullLoader)
            except yaml.YAMLError as e:
                raise ConfigProcessingFailed("Application file '{}' is not valid YAML: {}".format(filename, e))
        if not isinstance(data, dict):
            raise ConfigProcessingFailed("Application file '{}' must contain a mapping".format(filename))
        return data
