import os
from typing import Dict

from cement import App, init_defaults
from cement.core.exc import CaughtSignal

import deckhand.core.adapters  # noqa:F401,F403  # pylint:disable=unused-import

from .config import Config
from .controllers import Base, Deploy
from .controllers.utils import EXIT_CANCELLED

# configuration defaults
CONFIG = init_defaults('deckhand')
META = init_defaults('log.logging')
META['log.logging']['log_level_argument'] = ['-l', '--level']


# ------------------
# The cement app
# ------------------

class DeckhandApp(App):
    """Deckhand primary application."""

    class Meta:
        label = 'deckhand'

        config_defaults = CONFIG
        meta_defaults = META

        # call sys.exit() on close
        exit_on_close = True

        # load additional framework extensions
        extensions = [
            'yaml',
            'colorlog',
            'print',
        ]

        # configuration handler
        config_handler = 'yaml'

        # configuration file suffix
        config_file_suffix = '.yml'

        # handlers
        log_handler = 'colorlog'

        # register handlers
        handlers = [
            Base,
            Deploy,
        ]

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._deckhand_configs: Dict[str, Config] = {}

    def load_deckhand_config(self, filename: str) -> Config:
        """
        Load the application file ``filename`` and do our ``${env.VAR}`` replacements in it.

        Returns:
            The fully interpolated Config object.
        """
        if filename not in self._deckhand_configs:
            ignore_missing_environment = (
                self.pargs.ignore_missing_environment or
                os.environ.get('DECKHAND_IGNORE_MISSING_ENVIRONMENT', 'false').lower() == 'true'
            )
            self._deckhand_configs[filename] = Config.new(
                filename,
                env_file=self.pargs.env_file,
                ignore_missing_environment=ignore_missing_environment
            )
        return self._deckhand_configs[filename]


# ==========================================
# entrypoint
# ==========================================


def main():
    with DeckhandApp() as app:
        try:
            app.run()

        except AssertionError as e:
            print('AssertionError > %s' % e.args[0])
            app.exit_code = 1

            if app.debug is True:
                import traceback
                traceback.print_exc()

        except CaughtSignal as e:
            # SIGINT and SIGTERM stop a deployment in its tracks
            print('\n%s' % e)
            app.exit_code = EXIT_CANCELLED


if __name__ == '__main__':
    main()
