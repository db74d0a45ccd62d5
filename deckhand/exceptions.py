from typing import Any, Dict, Optional


class SchemaException(Exception):
    """
    There was a schema validation problem in the application's YAML file.
    """
    pass


class OperationFailed(Exception):
    """
    We tried to do something we expected to succeed, but it failed.
    """
    pass


class ConfigProcessingFailed(Exception):
    """
    While loading the application's YAML file or performing our variable substitutions in it, we had a problem.
    """
    pass


class SkipConfigProcessing(Exception):
    """
    This is used to skip processing steps when looping through the variable substitution classes.
    """
    pass


class NoSuchScheduler(Exception):
    """
    The ``scheduler:`` section named a scheduler type we have no backend for.
    """

    def __init__(self, scheduler_type: str):
        super().__init__()
        self.scheduler_type = scheduler_type

    def __str__(self) -> str:
        return f'No such scheduler type: "{self.scheduler_type}"'


class DeploymentError(Exception):
    """
    The base class for the ways in which waiting for a deployment to finish can end badly.

    ``last_response`` is the last describe response we received, if any.
    """

    def __init__(self, reason: str, last_response: Optional[Dict[str, Any]] = None):
        super().__init__(reason)
        self.reason = reason
        self.last_response = last_response

    def __str__(self) -> str:
        return self.reason


class DeploymentFailed(DeploymentError):
    """
    The remote system told us the deployment failed: the service went missing or the rollout failed.
    """
    pass


class DeploymentTimedOut(DeploymentError):
    """
    The deployment was still converging when we ran out of time.  This does not necessarily mean the
    deployment will fail.
    """
    pass


class DeploymentCancelled(DeploymentError):
    """
    Somebody asked us to stop waiting.
    """
    pass
