from collections.abc import Callable
from functools import wraps

import click

from deckhand.core.adapters.abstract import Adapter
from deckhand.core.aws import AWSSessionBuilder
from deckhand.exceptions import (
    ConfigProcessingFailed,
    DeploymentCancelled,
    DeploymentError,
    DeploymentTimedOut,
    NoSuchScheduler,
    OperationFailed,
    SchemaException,
)

#: Exit codes for the ways a deployment can end badly
EXIT_FAILURE = 1
EXIT_TIMEOUT = 2
EXIT_CANCELLED = 130

# ========================
# Decorators
# ========================

def handle_model_exceptions(func: Callable) -> Callable:
    """
    This decorator catches all the kinds of exceptions we expect to see in normal
    operation while letting others display their stack traces normally.  It prints
    the error in red and sets our exit code:

    * 2: we gave up waiting for the deployment
    * 130: somebody cancelled the deployment
    * 1: anything else

    We use this decorator to wrap cement command methods on
    :py:class:`cement.Controller` subclasses.
    """

    @wraps(func)
    def inner(self, *args, **kwargs):
        try:
            obj = func(self, *args, **kwargs)
        except DeploymentError as e:
            self.app.print(click.style(str(e), fg="red"))
            if isinstance(e, DeploymentTimedOut):
                self.app.exit_code = EXIT_TIMEOUT
            elif isinstance(e, DeploymentCancelled):
                self.app.exit_code = EXIT_CANCELLED
            else:
                self.app.exit_code = EXIT_FAILURE
        except (
            OperationFailed,
            SchemaException,
            Adapter.SchemaException,
            ConfigProcessingFailed,
            NoSuchScheduler,
            AWSSessionBuilder.NoSuchAWSProfile,
            AWSSessionBuilder.ForbiddenAWSAccountId,
        ) as e:
            self.app.print(click.style(str(e), fg="red"))
            self.app.exit_code = EXIT_FAILURE
        else:
            return obj
    return inner
