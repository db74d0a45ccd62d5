from typing import Any, Dict, List, Optional

from tzlocal import get_localzone

from deckhand.core.models import Service

from .abstract import AbstractWaiterHook


class ECSDeploymentStatusWaiterHook(AbstractWaiterHook):
    """
    Report on an ECS service's deployments while we wait for it to become stable: the running and
    desired counts of each deployment on every tick, plus any service events that are new since the
    last tick.

    ``obj`` is the :py:class:`deckhand.core.models.Service` returned by the update that started the
    deployment.  Events it already carries are old news and won't be reported.
    """

    def __init__(self, obj: Service, logger=None) -> None:
        super().__init__(obj, logger=logger)
        self.our_timezone = get_localzone()
        self.latest_event_id: Optional[str] = self.find_latest_event_id(obj.events)
        self.service: Optional[Service] = None

    @staticmethod
    def find_latest_event_id(events: List[Dict[str, Any]]) -> Optional[str]:
        # ECS returns service events newest first
        if events:
            return events[0]['id']
        return None

    def setup(self, status, response, num_attempts, **kwargs):
        self.service = None
        if response and response.get('services'):
            self.service = Service.from_aws(response['services'][0])

    def display_deployments(self, service: Service, num_attempts: int) -> None:
        for deployment in service.deployments:
            self.logger.info(
                '%s: %s desired=%d running=%d pending=%d (%s) [attempt %d]',
                service.name or self.obj.name,
                deployment.status,
                deployment.desired_count,
                deployment.running_count,
                deployment.pending_count,
                deployment.task_definition,
                num_attempts
            )

    def display_events(self, service: Service) -> None:
        new_events = []
        for event in service.events:
            if event['id'] == self.latest_event_id:
                break
            new_events.append(event)
        for event in reversed(new_events):
            self.logger.info(
                '%s %s',
                event['createdAt'].astimezone(self.our_timezone).strftime('%Y-%m-%d %H:%M:%S'),
                event['message']
            )
        self.latest_event_id = self.find_latest_event_id(service.events) or self.latest_event_id

    def waiting(self, status, response, num_attempts, **kwargs):
        if self.service is not None:
            self.display_events(self.service)
            self.display_deployments(self.service, num_attempts)

    success = waiting

    def failure(self, status, response, num_attempts, **kwargs):
        if self.service is not None:
            self.display_events(self.service)
            self.display_deployments(self.service, num_attempts)
        self.logger.error('%s: service failed to stabilize', self.obj.name)

    def error(self, status, response, num_attempts, **kwargs):
        self.logger.warning('%s: could not describe the service [attempt %d]', self.obj.name, num_attempts)

    def timeout(self, status, response, num_attempts, **kwargs):
        self.logger.error(
            '%s: timed out after %.0f seconds waiting for the service to stabilize.  This does not '
            'necessarily mean the deployment failed: check the AWS console to be sure.',
            self.obj.name,
            kwargs.get('Elapsed', 0)
        )

    def cancelled(self, status, response, num_attempts, **kwargs):
        self.logger.warning('%s: stopped waiting for the service to stabilize', self.obj.name)
