from copy import deepcopy
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from deckhand.core.lookup import Found, LookupResult, NotFound, TransportError

from .abstract import Manager, Model


__all__ = [
    'ContainerDefinition',
    'Deployment',
    'Service',
    'ServiceManager',
    'TaskDefinition',
    'TaskDefinitionManager',
]


# ----------------------------------------
# Helpers
# ----------------------------------------

def canonical_list(items: Sequence[Any]) -> List[Any]:
    """
    Return ``items`` in a stable order so that two lists with the same members compare equal
    no matter what order AWS or the application file put them in.
    """
    return sorted(items, key=lambda x: json.dumps(x, sort_keys=True, default=str))


def without_nones(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    boto3 rejects ``None`` for any parameter, so strip out the keys we have no value for.
    """
    return {k: v for k, v in data.items() if v is not None}


def error_message(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get('Error', {}).get('Message', str(e))
    return str(e)


# ----------------------------------------
# Managers
# ----------------------------------------

class TaskDefinitionManager(Manager):

    service = 'ecs'

    def get(self, pk: str, **_) -> LookupResult:
        """
        :param pk str: a task definition family, "family:revision" or ARN.  Given just a family,
                       AWS returns the latest ACTIVE revision.
        """
        try:
            response = self.client.describe_task_definition(taskDefinition=pk)
        except ClientError as e:
            # ECS reports an unknown family as a generic ClientException
            if e.response.get('Error', {}).get('Code') == 'ClientException':
                return NotFound()
            return TransportError(e)
        except BotoCoreError as e:
            return TransportError(e)
        data = dict(response['taskDefinition'])
        containers = [ContainerDefinition(d) for d in data.pop('containerDefinitions', [])]
        return Found(TaskDefinition(data, containers=containers))

    def save(self, obj: Model, **_) -> str:
        try:
            response = self.client.register_task_definition(**obj.render())
        except (ClientError, BotoCoreError) as e:
            raise TaskDefinition.OperationFailed(
                f'Could not register a new revision of task definition "{obj.pk}": {error_message(e)}'
            ) from e
        return response['taskDefinition']['taskDefinitionArn']


class ServiceManager(Manager):

    service: str = 'ecs'

    def __get_service_and_cluster_from_pk(self, pk: str) -> Tuple[str, str]:
        cluster, service = pk.split(':', 1)
        return service, cluster

    def get(self, pk: str, **_) -> LookupResult:
        """
        :param pk str: a string like "{cluster_name}:{service_name}"
        """
        service, cluster = self.__get_service_and_cluster_from_pk(pk)
        try:
            response = self.client.describe_services(cluster=cluster, services=[service])
        except (ClientError, BotoCoreError) as e:
            return TransportError(e)
        if response.get('failures') or not response.get('services'):
            return NotFound()
        data = response['services'][0]
        if data.get('status') == 'INACTIVE':
            # Deleted services linger as INACTIVE for a while; we can create a new one with the same name
            return NotFound()
        return Found(Service.from_aws(data, cluster=cluster))

    def create(self, obj: "Service") -> "Service":
        try:
            response = self.client.create_service(**obj.render_for_create())
        except (ClientError, BotoCoreError) as e:
            raise Service.OperationFailed(
                f'Could not create service "{obj.name}" in cluster "{obj.cluster}": {error_message(e)}'
            ) from e
        return Service.from_aws(response['service'], cluster=obj.cluster)

    def update(self, obj: "Service") -> "Service":
        try:
            response = self.client.update_service(**obj.render_for_update())
        except (ClientError, BotoCoreError) as e:
            raise Service.OperationFailed(
                f'Could not update service "{obj.name}" in cluster "{obj.cluster}": {error_message(e)}'
            ) from e
        return Service.from_aws(response['service'], cluster=obj.cluster)


# ----------------------------------------
# Models
# ----------------------------------------

class ContainerDefinition(Model):
    """
    One container in a task definition.  ``data`` looks like an element of ``containerDefinitions`` in
    ``boto3.client('ecs').describe_task_definition()``.
    """

    #: Fields that stay ``None`` when not set.  ``None`` only equals ``None``.
    NULLABLE_FIELDS: Tuple[str, ...] = (
        'memory',
        'memoryReservation',
        'entryPoint',
        'command',
        'user',
        'logConfiguration',
    )

    #: Fields AWS leaves out when they are empty, or fills with its own default
    DEFAULTS: Dict[str, Any] = {
        'cpu': 0,
        'links': [],
        'portMappings': [],
        'essential': True,
        'environment': [],
        'dockerLabels': {},
        'mountPoints': [],
        'privileged': False,
        'volumesFrom': [],
    }

    @property
    def pk(self) -> str:
        return self.name

    @property
    def name(self) -> str:
        return self.data.get('name', None)

    @property
    def arn(self) -> Optional[str]:
        return None

    def render_for_diff(self) -> Dict[str, Any]:
        """
        Return only the fields we reconcile, normalized so that a container from the application file and
        the same container as reported by AWS compare equal.
        """
        data: Dict[str, Any] = {'image': self.data.get('image')}
        for key in self.NULLABLE_FIELDS:
            data[key] = deepcopy(self.data.get(key))
        for key, default in self.DEFAULTS.items():
            value = self.data.get(key)
            data[key] = deepcopy(default) if value is None else deepcopy(value)
        data['environment'] = {x['name']: x['value'] for x in data['environment']}
        data['links'] = sorted(data['links'])
        data['portMappings'] = canonical_list([
            dict(without_nones(p), hostPort=p.get('hostPort') or 0, protocol=p.get('protocol') or 'tcp')
            for p in data['portMappings']
        ])
        data['mountPoints'] = canonical_list([
            dict(without_nones(m), readOnly=m.get('readOnly') or False) for m in data['mountPoints']
        ])
        data['volumesFrom'] = canonical_list([
            dict(without_nones(v), readOnly=v.get('readOnly') or False) for v in data['volumesFrom']
        ])
        return data

    def render(self) -> Dict[str, Any]:
        return without_nones(deepcopy(self.data))


class TaskDefinition(Model):
    """
    An ECS Task Definition.

    .. note::

        In AWS, the task definition object contains all the configuration for each of the containers
        that will be part of the task, but we keep container definitions in ``ContainerDefinition``
        objects so that we can compare them by name.

    ``TaskDefinition.data`` looks like this::

        'taskDefinitionArn': 'string',      Not present if we built this from the application file
        'family': 'string',
        'taskRoleArn': 'string',            [optional]
        'revision': 123,                    Not present if we built this from the application file
        'volumes': [
            {
                'name': 'string',
                'host': {
                    'sourcePath': 'string'
                },
            }
        ]
    """

    #: The keys of a volume that describe where its data comes from
    VOLUME_SOURCE_KEYS: Tuple[str, ...] = (
        'host',
        'dockerVolumeConfiguration',
        'efsVolumeConfiguration',
    )

    def __init__(self, data: Dict[str, Any], containers: Sequence[ContainerDefinition] = None) -> None:
        super().__init__(data)
        self.containers: List[ContainerDefinition] = list(containers) if containers else []

    @property
    def pk(self) -> str:
        """
        If this task definition exists in AWS, return our ``<family>:<revision>`` string.
        Else, return just the family.
        """
        if self.revision:
            return f"{self.family}:{self.revision}"
        return self.family

    @property
    def name(self) -> str:
        return self.pk

    @property
    def arn(self) -> Optional[str]:
        return self.data.get('taskDefinitionArn', None)

    @property
    def family(self) -> str:
        return self.data['family']

    @property
    def revision(self) -> Optional[int]:
        return self.data.get('revision', None)

    @property
    def task_role_arn(self) -> Optional[str]:
        return self.data.get('taskRoleArn', None)

    @property
    def volumes(self) -> List[Dict[str, Any]]:
        return self.data.get('volumes', None) or []

    def render_volumes_for_diff(self) -> List[Dict[str, Any]]:
        volumes = []
        for volume in self.volumes:
            data = {'name': volume['name']}
            for key in self.VOLUME_SOURCE_KEYS:
                # AWS reports a volume with no host path as having "host: {}"
                if volume.get(key):
                    data[key] = volume[key]
            volumes.append(data)
        return canonical_list(volumes)

    def render_for_diff(self) -> Dict[str, Any]:
        return {
            'family': self.family,
            'taskRoleArn': self.task_role_arn,
            'containerDefinitions': {c.name: c.render_for_diff() for c in self.containers},
            'volumes': self.render_volumes_for_diff(),
        }

    def render(self) -> Dict[str, Any]:
        """
        The payload for ``boto3.client('ecs').register_task_definition()``.  Containers keep the order they
        were declared in.
        """
        data: Dict[str, Any] = {'family': self.family}
        if self.task_role_arn:
            data['taskRoleArn'] = self.task_role_arn
        data['containerDefinitions'] = [c.render() for c in self.containers]
        data['volumes'] = deepcopy(self.volumes)
        return data


class Deployment(Model):
    """
    One element of ``deployments`` in ``boto3.client('ecs').describe_services()``.
    """

    @property
    def pk(self) -> str:
        return self.data.get('id', None)

    @property
    def name(self) -> str:
        return self.pk

    @property
    def arn(self) -> Optional[str]:
        return None

    @property
    def status(self) -> str:
        return self.data.get('status', 'UNKNOWN')

    @property
    def desired_count(self) -> int:
        return self.data.get('desiredCount', 0)

    @property
    def running_count(self) -> int:
        return self.data.get('runningCount', 0)

    @property
    def pending_count(self) -> int:
        return self.data.get('pendingCount', 0)

    @property
    def task_definition(self) -> Optional[str]:
        return self.data.get('taskDefinition', None)

    @property
    def rollout_state(self) -> Optional[str]:
        return self.data.get('rolloutState', None)

    def __str__(self) -> str:
        return '{}: desired={} running={} pending={}'.format(
            self.status,
            self.desired_count,
            self.running_count,
            self.pending_count
        )


class Service(Model):
    """
    An ECS Service.  When built from the application file, ``data`` holds what we pass to
    ``create_service()``; when loaded from AWS it holds what ``describe_services()`` returned, plus
    ``cluster``, the short name of the cluster.

    .. note::

        ``role``, ``placementConstraints`` and ``placementStrategy`` are only ever sent when we create the
        service.  We never compare them against what is live, and never update them.
    """

    @classmethod
    def from_aws(cls, data: Dict[str, Any], cluster: str = None) -> "Service":
        data = deepcopy(data)
        if 'clusterArn' in data:
            data['cluster'] = data['clusterArn'].split('/')[-1]
        elif cluster:
            data['cluster'] = cluster
        return cls(data)

    @property
    def pk(self) -> str:
        """
        Service names are only unique within a cluster, so to fully identify a service you have to
        give both cluster and service name.

        :returns: "{cluster_name}:{service_name}".
        """
        return ':'.join([self.cluster, self.name])

    @property
    def name(self) -> str:
        return self.data.get('serviceName', None)

    @property
    def arn(self) -> Optional[str]:
        return self.data.get('serviceArn', None)

    @property
    def cluster(self) -> str:
        return self.data.get('cluster', None)

    @property
    def cluster_arn(self) -> Optional[str]:
        return self.data.get('clusterArn', None)

    @property
    def status(self) -> str:
        return self.data.get('status', 'UNKNOWN')

    @property
    def desired_count(self) -> int:
        return self.data.get('desiredCount', 0)

    @property
    def task_definition_arn(self) -> Optional[str]:
        return self.data.get('taskDefinition', None)

    @task_definition_arn.setter
    def task_definition_arn(self, value: str) -> None:
        self.data['taskDefinition'] = value

    @property
    def deployment_configuration(self) -> Dict[str, Any]:
        return self.data.get('deploymentConfiguration', None) or {}

    @property
    def events(self) -> List[Dict[str, Any]]:
        return self.data.get('events', None) or []

    @property
    def deployments(self) -> List[Deployment]:
        return [Deployment(d) for d in self.data.get('deployments', None) or []]

    @property
    def primary_deployment(self) -> Optional[Deployment]:
        for deployment in self.deployments:
            if deployment.status == 'PRIMARY':
                return deployment
        return None

    @property
    def is_stable(self) -> bool:
        """
        A service is stable when it has exactly one PRIMARY deployment, that deployment is running as
        many tasks as it wants, and no older deployment is still ACTIVE.
        """
        primaries = [d for d in self.deployments if d.status == 'PRIMARY']
        actives = [d for d in self.deployments if d.status == 'ACTIVE']
        if len(primaries) != 1 or actives:
            return False
        return primaries[0].running_count == primaries[0].desired_count

    @property
    def rollout_failed(self) -> bool:
        """
        ``True`` if ECS's deployment circuit breaker gave up on our PRIMARY deployment.
        """
        primary = self.primary_deployment
        return primary is not None and primary.rollout_state == 'FAILED'

    def render_for_diff(self) -> Dict[str, Any]:
        return {
            'desiredCount': self.desired_count,
            'taskDefinition': self.task_definition_arn,
            'deploymentConfiguration': deepcopy(self.deployment_configuration),
        }

    def render_for_create(self) -> Dict[str, Any]:
        """
        Prepare the payload for ``boto3.client('ecs').create_service()``.  We always create services with
        ``desiredCount`` of 0; the following ``update_service()`` scales them up.
        """
        data: Dict[str, Any] = {
            'cluster': self.cluster,
            'serviceName': self.name,
            'taskDefinition': self.task_definition_arn,
            'desiredCount': 0,
        }
        if self.data.get('role'):
            data['role'] = self.data['role']
        data['deploymentConfiguration'] = deepcopy(self.deployment_configuration)
        data['placementConstraints'] = deepcopy(self.data.get('placementConstraints', []))
        data['placementStrategy'] = deepcopy(self.data.get('placementStrategy', []))
        return data

    def render_for_update(self) -> Dict[str, Any]:
        """
        Prepare the payload for ``boto3.client('ecs').update_service()``.  This is always the full state we
        reconcile, never a partial patch.
        """
        return {
            'cluster': self.cluster,
            'service': self.name,
            'taskDefinition': self.task_definition_arn,
            'desiredCount': self.desired_count,
            'deploymentConfiguration': deepcopy(self.deployment_configuration),
        }
