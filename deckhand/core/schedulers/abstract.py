import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from deckhand.core.comparator import compare_services, compare_task_definitions
from deckhand.core.lookup import LookupResult, TransportError
from deckhand.core.models import Model
from deckhand.exceptions import DeploymentError, OperationFailed


#: Outcomes of reconciling a service
CREATED = 'created'
UPDATED = 'updated'
UNCHANGED = 'unchanged'


class AbstractScheduler:
    """
    The orchestration driver.  :py:meth:`deploy` walks the same decision tree for every backend:

    1. describe the live service
    2. compare the desired task definition with the live one and register a new revision if they differ
    3. create the service, update it, or leave it alone
    4. wait for the service to become stable

    Backends implement the remote calls by overriding the methods that raise ``NotImplementedError``.

    Args:
        app_id: the application id.  This names both the task definition family and the service.
        options: the ``scheduler:`` section of the application file

    Keyword Args:
        volumes: the ``volumes:`` section of the application file
        force: update the service even if nothing has changed
        dry_run: log what we would do to the remote system instead of doing it
        timeout: give up waiting for the deployment after this many seconds.  ``None`` means wait forever.
        logger: where to report progress
        cancel_event: set this from another thread to stop waiting for the deployment
        tag: the image tag to deploy for the ``app`` container
    """

    def __init__(
        self,
        app_id: str,
        options: Dict[str, Any],
        volumes: Dict[str, Any] = None,
        force: bool = False,
        dry_run: bool = False,
        timeout: Optional[float] = None,
        logger: logging.Logger = None,
        cancel_event: threading.Event = None,
        tag: str = None
    ) -> None:
        self.app_id = app_id
        self.options = options if options else {}
        self.volumes = volumes if volumes else {}
        self.force = force
        self.dry_run = dry_run
        self.timeout = timeout
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self.tag = tag

    # ------------------------
    # Backends override these
    # ------------------------

    def build_task_definition(self, containers: List[Dict[str, Any]]) -> Model:
        raise NotImplementedError

    def build_service(self) -> Model:
        raise NotImplementedError

    def describe_service(self) -> LookupResult:
        raise NotImplementedError

    def describe_task_definition(self) -> LookupResult:
        raise NotImplementedError

    def register(self, desired: Model) -> str:
        """
        Register ``desired`` as a new revision and return a reference to it.
        """
        raise NotImplementedError

    def create_service(self, desired: Model) -> Model:
        raise NotImplementedError

    def update_service(self, desired: Model) -> Model:
        raise NotImplementedError

    def await_stable(self, cluster: str, service_ref: str, timeout: Optional[float]) -> Dict[str, Any]:
        """
        Block until the service is stable.

        Raises:
            DeploymentFailed: the deployment failed
            DeploymentTimedOut: we waited ``timeout`` seconds
            DeploymentCancelled: somebody set ``self.cancel_event``
        """
        raise NotImplementedError

    # ------------------------
    # The driver
    # ------------------------

    def live_task_definition(self) -> Optional[Model]:
        """
        Return the live task definition, or ``None`` if there isn't one.  A failed lookup counts as "no
        live task definition": we'll just register a new revision.
        """
        result = self.describe_task_definition()
        if isinstance(result, TransportError):
            self.logger.warning(
                'Could not describe task definition "%s", assuming it does not exist: %s', self.app_id, result.error
            )
            return None
        return result.value if result.found else None

    def live_service(self) -> Optional[Model]:
        result = self.describe_service()
        if isinstance(result, TransportError):
            raise OperationFailed(f'Could not describe service "{self.app_id}": {result.error}') from result.error
        return result.value if result.found else None

    def register_if_changed(self, desired: Model) -> str:
        """
        Register ``desired`` if it differs from the live task definition.

        Returns:
            A reference to the task definition the service should run.
        """
        live = self.live_task_definition()
        comparison = compare_task_definitions(desired, live)
        if not comparison.changed:
            self.logger.info("Task definition isn't changed: %s", live.arn)
            return live.arn
        for reason in comparison.reasons:
            self.logger.info('Task definition changed: %s', reason)
        if live is not None:
            self.logger.debug('Task definition diff: %s', desired.diff(live))
        ref = self.register(desired)
        self.logger.info('Registered task definition: %s', ref)
        return ref

    def reconcile(self, desired: Model, task_definition_ref: str, live: Optional[Model]) -> Tuple[str, Optional[Model]]:
        """
        Make the live service look like ``desired``, running ``task_definition_ref``.

        Returns:
            A tuple of one of ``'created'``, ``'updated'`` or ``'unchanged'``, and the service as the remote
            system reported it after our last mutation (``None`` if we made none, or in a dry run).
        """
        desired.task_definition_arn = task_definition_ref
        if live is None:
            self.create_service(desired)
            self.logger.info('Created service')
            service = self.update_service(desired)
            self.logger.info('Updated service: %s', service.arn if service else desired.name)
            return CREATED, service
        changes = compare_services(desired, live)
        for key, (live_value, desired_value) in changes.items():
            self.logger.info('%s changed: %r -> %r', key, live_value, desired_value)
        if not changes and not self.force:
            self.logger.info("Service isn't changed")
            return UNCHANGED, None
        if not changes:
            self.logger.info('Forcing a new deployment')
        service = self.update_service(desired)
        self.logger.info('Updated service: %s', service.arn if service else desired.name)
        return UPDATED, service

    def deploy(self, containers: List[Dict[str, Any]]) -> bool:
        """
        Deploy ``containers`` as our application.

        Raises:
            OperationFailed: a call that changes the remote system failed, or we could not describe the service
            DeploymentError: the deployment started but did not complete

        Returns:
            ``True`` once the deployment has completed.
        """
        desired_task_definition = self.build_task_definition(containers)
        desired_service = self.build_service()
        try:
            live_service = self.live_service()
            task_definition_ref = self.register_if_changed(desired_task_definition)
            outcome, service = self.reconcile(desired_service, task_definition_ref, live_service)
            if self.dry_run:
                self.logger.info('Deployment completed (dry-run)')
                return True
            if outcome != UNCHANGED:
                self.await_stable(service.cluster_arn or service.cluster, service.arn or service.name, self.timeout)
        except (OperationFailed, DeploymentError) as e:
            self.logger.error('Deployment failed: %s', e)
            raise
        self.logger.info('Deployment completed')
        return True
