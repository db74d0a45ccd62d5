import os
import os.path
import re
from typing import Dict, Any, Union, TYPE_CHECKING

from .abstract import AbstractConfigProcessor

if TYPE_CHECKING:
    from deckhand.config import Config


class EnvironmentConfigProcessor(AbstractConfigProcessor):
    """
    Replace ``${env.VAR}`` in string values with the value of ``VAR`` from our environment.

    Our environment is the contents of ``context['env_file']``, if given, plus the process environment
    unless ``context['import_env']`` is ``False``.  The process environment wins.  With neither, we
    leave ``${env.VAR}`` strings alone.
    """

    ENVIRONMENT_RE = re.compile(r'\$\{env\.(?P<key>[A-Za-z0-9_{}-]+)\}')

    def __init__(self, config: "Config", context: Dict[str, Any]):
        super().__init__(config, context)
        if not self.context.get('env_file', None) and not self.context.get('import_env', True):
            raise self.SkipConfigProcessing('No environment to read values from')
        self.environ: Dict[str, str] = {}
        if self.context.get('env_file', None):
            self.environ.update(self._load_env_file(self.context['env_file']))
        if self.context.get('import_env', True):
            self.environ.update(os.environ)

    def _load_env_file(self, filename: str) -> Dict[str, str]:
        if not os.path.exists(filename):
            if not self.context.get('ignore_missing_environment', False):
                raise self.ProcessingFailed('Environment file "{}" does not exist'.format(filename))
            return {}
        if not os.path.isfile(filename):
            if not self.context.get('ignore_missing_environment', False):
                raise self.ProcessingFailed('Environment file "{}" is not a regular file'.format(filename))
            return {}
        try:
            with open(filename, encoding='utf-8') as f:
                raw_lines = f.readlines()
        except PermissionError:
            if not self.context.get('ignore_missing_environment', False):
                raise self.ProcessingFailed('Environment file "{}" is not readable'.format(filename))
            return {}
        # Strip the comments and empty lines
        lines = [x.strip() for x in raw_lines if x.strip() and not x.strip().startswith("#")]
        environment = {}
        for line in lines:
            # split on the first "="
            parts = line.split('=', 1)
            if len(parts) == 2:
                environment[parts[0].strip()] = parts[1].strip()
        return environment

    def lookup(self, envkey: str, section_name: str) -> str:
        for replace_str, replace_value in self.deckhand_lookups.items():
            envkey = envkey.replace(replace_str, replace_value)
        envkey = envkey.upper().replace('-', '_')
        try:
            return self.environ[envkey]
        except KeyError:
            if not self.context.get('ignore_missing_environment', False):
                raise self.ProcessingFailed(
                    'Config["{}"]: Could not find value for ${{env.{}}}'.format(section_name, envkey)
                )
            return 'NOT-IN-ENVIRONMENT'

    def replace(self, obj: Any, key: Union[str, int], value: str, section_name: str) -> None:
        if self.ENVIRONMENT_RE.search(value):
            obj[key] = self.ENVIRONMENT_RE.sub(lambda m: self.lookup(m.group('key'), section_name), value)
