from pprint import pformat
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from deckhand.core.lookup import LookupResult
from deckhand.core.models import Service, ServiceManager, TaskDefinition, TaskDefinitionManager
from deckhand.core.waiters import FAILURE, SUCCESS, WAITING, HookedWaiter
from deckhand.core.waiters.hooks.ecs import ECSDeploymentStatusWaiterHook
from deckhand.registry import scheduler_registry

from .abstract import AbstractScheduler


class EcsScheduler(AbstractScheduler):
    """
    Deploy to an ECS service.  Our ``scheduler:`` section looks like this::

        scheduler:
          type: ecs
          cluster: my-cluster                 default: "default"
          desired_count: 2
          role: ecsServiceRole                [optional] only used when creating the service
          task_role_arn: arn:aws:iam::...     [optional]
          deployment_configuration:           [optional]
            maximum_percent: 200
            minimum_healthy_percent: 50
            circuit_breaker:
              enable: true
              rollback: false
          placement_constraints: []           [optional] only used when creating the service
          placement_strategy: []              [optional] only used when creating the service
          poll_interval: 5                    [optional] seconds between checks on the deployment

    Keyword Args:
        client: the boto3 ECS client to use.  If not given, we build one from our boto3 session.
        clock: the clock the deployment waiter measures its timeout with
        sleep: what the deployment waiter calls to wait between checks
        max_errors: how many describe errors in a row the deployment waiter tolerates
    """

    DEFAULT_POLL_INTERVAL: float = 5

    def __init__(
        self,
        app_id: str,
        options: Dict[str, Any],
        client=None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = None,
        max_errors: int = 5,
        **kwargs
    ) -> None:
        super().__init__(app_id, options, **kwargs)
        self.task_definitions = TaskDefinitionManager(client=client)
        self.services = ServiceManager(client=client)
        self.clock = clock
        self.sleep = sleep
        self.max_errors = max_errors
        self.deployed_service: Optional[Service] = None
        self.delay = float(self.options.get('poll_interval', self.DEFAULT_POLL_INTERVAL))

    @property
    def client(self):
        return self.task_definitions.client

    @property
    def cluster(self) -> str:
        return self.options.get('cluster', 'default')

    def log_skipped_call(self, method: str, payload: Dict[str, Any]) -> None:
        self.logger.info('ecs.%s(%s)', method, pformat(payload))

    # ------------------------
    # Task Definition Registrar
    # ------------------------

    def build_task_definition(self, containers: List[Dict[str, Any]]) -> TaskDefinition:
        data = {
            'family': self.app_id,
            'containers': containers,
            'volumes': self.volumes,
        }
        if self.options.get('task_role_arn'):
            data['task_role_arn'] = self.options['task_role_arn']
        return TaskDefinition.new(data, 'deckhand', tag=self.tag)

    def describe_task_definition(self) -> LookupResult:
        return self.task_definitions.get(self.app_id)

    def register(self, desired: TaskDefinition) -> str:
        if self.dry_run:
            self.log_skipped_call('register_task_definition', desired.render())
            return f'{desired.family}:dry-run'
        return self.task_definitions.save(desired)

    # ------------------------
    # Service Reconciler
    # ------------------------

    def build_service(self) -> Service:
        return Service.new(self.options, 'deckhand', service_name=self.app_id)

    def describe_service(self) -> LookupResult:
        return self.services.get(f'{self.cluster}:{self.app_id}')

    def create_service(self, desired: Service) -> Optional[Service]:
        if self.dry_run:
            self.log_skipped_call('create_service', desired.render_for_create())
            return None
        return self.services.create(desired)

    def update_service(self, desired: Service) -> Optional[Service]:
        if self.dry_run:
            self.log_skipped_call('update_service', desired.render_for_update())
            return None
        self.deployed_service = self.services.update(desired)
        return self.deployed_service

    # ------------------------
    # Deployment Poller
    # ------------------------

    def deployment_acceptor(self, response: Dict[str, Any]) -> Tuple[str, Optional[str]]:
        """
        Decide from one ``describe_services()`` response where our deployment is.

        A service is stable when it has exactly one PRIMARY deployment running as many tasks as it wants and
        no ACTIVE deployments left over.  It has failed if ECS can't find it, or if ECS's deployment circuit
        breaker gave up on it.
        """
        if response.get('failures'):
            failure = response['failures'][0]
            return FAILURE, f'{failure.get("arn", self.app_id)}: {failure.get("reason", "unknown failure")}'
        if not response.get('services'):
            return FAILURE, f'service "{self.app_id}" is missing'
        service = Service.from_aws(response['services'][0])
        if service.status == 'INACTIVE':
            return FAILURE, f'service "{self.app_id}" is INACTIVE'
        if service.rollout_failed:
            return FAILURE, f'rollout failed: {service.primary_deployment.data.get("rolloutStateReason", "")}'
        if service.is_stable:
            return SUCCESS, None
        return WAITING, None

    def await_stable(self, cluster: str, service_ref: str, timeout: Optional[float]) -> Dict[str, Any]:
        waiter = HookedWaiter(
            'deployment',
            self.client.describe_services,
            self.deployment_acceptor,
            delay=self.delay,
            timeout=timeout,
            max_errors=self.max_errors,
            clock=self.clock,
            sleep=self.sleep,
            cancel_event=self.cancel_event,
        )
        # Events already on the service when we updated it are old news
        service = self.deployed_service
        if service is None:
            service = Service.from_aws({'serviceName': self.app_id, 'serviceArn': service_ref}, cluster=self.cluster)
        hooks = [ECSDeploymentStatusWaiterHook(service, logger=self.logger)]
        return waiter.wait(hooks=hooks, cluster=cluster, services=[service_ref])


scheduler_registry.register('ecs', EcsScheduler)
