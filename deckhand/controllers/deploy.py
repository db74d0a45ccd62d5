import os
from typing import Optional

import click
from cement import Controller, ex

from deckhand.controllers.utils import handle_model_exceptions
from deckhand.core.aws import build_boto3_session
from deckhand.core.schedulers import deploy


def default_timeout() -> Optional[float]:
    """
    Return the default number of seconds to wait for a deployment to finish: the value of
    ``DECKHAND_DEPLOY_TIMEOUT`` if it is set, otherwise ``None`` (wait forever).
    """
    value = os.environ.get('DECKHAND_DEPLOY_TIMEOUT', None)
    if value:
        return float(value)
    return None


class Deploy(Controller):

    class Meta:
        label = 'deploy-commands'
        description = 'Deploy an application'
        stacked_on = 'base'
        stacked_type = 'embedded'

    @ex(
        help='Deploy the application described by an application file',
        arguments=[
            (['filename'], {'help': 'Path to the application file.  Its name, minus ".yml", is the application id.'}),
            (
                ['-t', '--tag'],
                {
                    'dest': 'tag',
                    'default': None,
                    'help': 'The image tag to deploy for the "app" container'
                }
            ),
            (
                ['--force'],
                {
                    'dest': 'force',
                    'action': 'store_true',
                    'default': False,
                    'help': 'Update the service even if nothing changed.  This restarts its tasks.'
                }
            ),
            (
                ['-n', '--dry-run'],
                {
                    'dest': 'dry_run',
                    'action': 'store_true',
                    'default': False,
                    'help': 'Show what would change in AWS without changing anything'
                }
            ),
            (
                ['--timeout'],
                {
                    'dest': 'timeout',
                    'type': float,
                    'default': default_timeout(),
                    'help': 'Give up waiting for the deployment after this many seconds.  Default: $DECKHAND_DEPLOY_TIMEOUT, '
                            'or wait forever.'
                }
            ),
        ]
    )
    @handle_model_exceptions
    def deploy(self):
        """
        Reconcile what is live in ECS with the application file, then wait for the service to
        become stable.
        """
        config = self.app.load_deckhand_config(self.app.pargs.filename)
        build_boto3_session(config.aws)
        self.app.log.info('Deploying {}{}'.format(config.app_id, ' (dry-run)' if self.app.pargs.dry_run else ''))
        deploy(
            config.app_id,
            config.scheduler,
            config.containers,
            volumes=config.volumes,
            force=self.app.pargs.force,
            dry_run=self.app.pargs.dry_run,
            timeout=self.app.pargs.timeout,
            logger=self.app.log.backend,
            tag=self.app.pargs.tag,
        )
        self.app.print(click.style('Deployed {}'.format(config.app_id), fg='green'))
