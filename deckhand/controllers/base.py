from cement import Controller
from cement.utils.version import get_version_banner

from deckhand import get_version


VERSION_BANNER = """
deckhand-%s: Deploy applications to AWS ECS
---
%s
""" % (get_version(), get_version_banner())


class Base(Controller):
    class Meta:
        label = 'base'

        # text displayed at the top of --help output
        description = 'deckhand: Deploy applications to AWS ECS'

        # controller level arguments. ex: 'deckhand --version'
        arguments = [
            ### add a version banner
            (['-v', '--version'], {'action' : 'version', 'version' : VERSION_BANNER}),
            (
                ['-e', '--env-file'],
                {
                    'dest': 'env_file',
                    'action': 'store',
                    'default': None,
                    'help': 'Path to an environment file to use for ${env.VAR} replacements'
                }
            ),
            (
                ['--ignore-missing-environment'],
                {
                    'dest': 'ignore_missing_environment',
                    'action': 'store_true',
                    'default': False,
                    'help': "Don't stop processing the application file if we can't dereference an ${env.VAR}"
                }
            ),
        ]

    def _default(self):
        """Default action if no sub-command is passed."""
        self.app.args.print_help()
