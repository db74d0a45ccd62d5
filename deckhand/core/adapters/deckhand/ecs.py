import re
import shlex
from typing import Any, Dict, List, Optional, Tuple, Union

from deckhand import __version__
from deckhand.core.models import ContainerDefinition

from ..abstract import Adapter


#: The docker label that records which version of deckhand registered a task definition
VERSION_LABEL: str = 'deckhand.version'


class ContainerDefinitionAdapter(Adapter):
    """
    Convert the YAML definition of one of our containers to the same format that
    :py:meth:`describe_task_definition` returns for container definitions.

    Args:
        data: an ``app:`` or ``additional_containers:`` stanza from the application file

    Keyword Args:
        task_definition_data: :py:attr:`deckhand.core.models.ecs.TaskDefinition.data` from the
            owning :py:class:`deckhand.core.models.ecs.TaskDefinition`.  We may add volumes to it.
        tag: if given, use this as the tag of our image
    """

    PORTS_RE = re.compile(r'^(?P<hostPort>\d+)(:(?P<containerPort>\d+))?(/(?P<protocol>udp|tcp))?$')
    MOUNT_RE = re.compile('[^A-Za-z0-9_-]')

    def __init__(
        self,
        data: Dict[str, Any],
        task_definition_data: Dict[str, Any] = None,
        tag: str = None
    ) -> None:
        super().__init__(data)
        self.task_definition_data = task_definition_data if task_definition_data is not None else {'volumes': []}
        self.tag = tag

    @property
    def container_name(self) -> str:
        return self.data.get('name', 'app')

    def get_int(self, key: str) -> Optional[int]:
        value = self.data.get(key, None)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise self.SchemaException(f'container "{self.container_name}": "{key}" must be an integer')

    def get_image(self) -> str:
        """
        Return our image with the right tag on it.  An explicit ``tag`` always wins; an image with no tag
        at all gets ``latest``.
        """
        if 'image' not in self.data:
            raise self.SchemaException(f'container "{self.container_name}": "image" is required')
        image = self.data['image']
        # A ":" in the last path component is a tag; one before it is a registry port
        has_tag = ':' in image.rsplit('/', 1)[-1]
        if self.tag:
            if has_tag:
                image = image.rsplit(':', 1)[0]
            return f'{image}:{self.tag}'
        if not has_tag:
            return f'{image}:latest'
        return image

    def get_ports(self) -> List[Dict[str, Any]]:
        """
        Port mappings in the application file look like this::

            ports:
                - "80"
                - "8443:443"
                - "8125:8125/udp"

        Convert them to this::

            [
                {"containerPort": 80, "protocol": "tcp"},
                {"containerPort": 443, "hostPort": 8443, "protocol": "tcp"},
                {"containerPort": 8125, "hostPort": 8125, "protocol": "udp"},
            ]
        """
        portMappings = []
        for mapping in self.data.get('ports', []):
            m = self.PORTS_RE.search(str(mapping))
            if not m:
                raise self.SchemaException(
                    f'container "{self.container_name}": {mapping} is not a valid port mapping'
                )
            port: Dict[str, Any] = {}
            if not m.group('containerPort'):
                port['containerPort'] = int(m.group('hostPort'))
            else:
                port['hostPort'] = int(m.group('hostPort'))
                port['containerPort'] = int(m.group('containerPort'))
            port['protocol'] = m.group('protocol') or 'tcp'
            portMappings.append(port)
        return portMappings

    def get_environment(self) -> List[Dict[str, str]]:
        """
        Environment variables are defined in one of these two ways::

            environment:
                - FOO=bar
                - BAZ=bash

        or::

            environment:
                FOO: bar
                BAZ: bash

        Convert them to this, keeping the order they were declared in::

            [
                {"name": "FOO", "value": "bar"},
                {"name": "BAZ", "value": "bash"}
            ]
        """
        source = self.data.get('environment', None) or {}
        if isinstance(source, list):
            environment = {}
            for env in source:
                if '=' not in env:
                    raise self.SchemaException(
                        f'container "{self.container_name}": environment entry "{env}" must look like KEY=value'
                    )
                key, value = env.split('=', 1)
                environment[key] = value
            source = environment
        return [{'name': str(k), 'value': str(v)} for k, v in source.items()]

    def get_dockerLabels(self) -> Dict[str, str]:
        """
        Docker labels are defined like environment variables, either as a list of ``KEY=value`` strings or
        as a mapping.  We always add our own version label, so that a new release of deckhand registers a
        new task definition revision.
        """
        dockerLabels: Dict[str, str] = {}
        source = self.data.get('labels', None) or {}
        if isinstance(source, dict):
            dockerLabels = {str(k): str(v) for k, v in source.items()}
        else:
            for label in source:
                key, value = label.split('=', 1)
                dockerLabels[key] = value
        dockerLabels[VERSION_LABEL] = __version__
        return dockerLabels

    def get_mountPoints(self) -> List[Dict[str, Any]]:
        """
        Volumes in a container stanza take one of these two forms::

            volumes:
                - storage:/container/path

        or::

            volumes:
                - /host/path:/container/path
                - /host/path-ro:/container/path-ro:ro

        "storage" in the first form refers to a volume named "storage" in the top level ``volumes:``
        section.  For the second form we add a volume for the host path to the task definition ourselves.
        """
        volume_names = {v['name'] for v in self.task_definition_data['volumes']}
        mountPoints = []
        for v in self.data.get('volumes', []):
            fields = v.split(':')
            if len(fields) not in (2, 3):
                raise self.SchemaException(
                    f'container "{self.container_name}": "{v}" is not a valid volume'
                )
            source, container_path = fields[0], fields[1]
            readOnly = len(fields) == 3 and fields[2] == 'ro'
            if source.startswith('/'):
                name = self.MOUNT_RE.sub('_', source)[:255]
                if name not in volume_names:
                    self.task_definition_data['volumes'].append({
                        'name': name,
                        'host': {'sourcePath': source}
                    })
                    volume_names.add(name)
            else:
                name = source
                if name not in volume_names:
                    raise self.SchemaException(
                        f'container "{self.container_name}": no volume named "{name}" in "volumes:"'
                    )
            mountPoints.append({
                'sourceVolume': name,
                'containerPath': container_path,
                'readOnly': readOnly,
            })
        return mountPoints

    def get_volumesFrom(self) -> List[Dict[str, Any]]:
        """
        ``volumes_from`` entries look like ``other-container`` or ``other-container:ro``.
        """
        volumesFrom = []
        for v in self.data.get('volumes_from', []):
            container, _, mode = v.partition(':')
            volumesFrom.append({'sourceContainer': container, 'readOnly': mode == 'ro'})
        return volumesFrom

    def get_logConfiguration(self) -> Dict[str, Any]:
        logging = self.data['logging']
        if 'driver' not in logging:
            raise self.SchemaException(f'container "{self.container_name}": logging: block must contain "driver"')
        logConfiguration: Dict[str, Any] = {'logDriver': logging['driver']}
        if 'options' in logging:
            logConfiguration['options'] = {str(k): str(v) for k, v in logging['options'].items()}
        return logConfiguration

    def split_command(self, value: Union[str, List[str]]) -> List[str]:
        if isinstance(value, list):
            return [str(v) for v in value]
        return shlex.split(value)

    def convert(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        data: Dict[str, Any] = {}
        data['name'] = self.container_name
        data['image'] = self.get_image()
        data['cpu'] = self.get_int('cpu') or 0
        data['memory'] = self.get_int('memory')
        data['memoryReservation'] = self.get_int('memory_reservation')
        if data['memory'] is not None and data['memoryReservation'] is not None:
            if data['memoryReservation'] >= data['memory']:
                raise self.SchemaException(
                    f'container "{self.container_name}": "memory_reservation" must be less than "memory"'
                )
        self.set(data, 'links', default=[], convert=list)
        data['portMappings'] = self.get_ports()
        self.set(data, 'essential', default=True, convert=bool)
        data['environment'] = self.get_environment()
        data['dockerLabels'] = self.get_dockerLabels()
        data['mountPoints'] = self.get_mountPoints()
        self.set(data, 'entry_point', dest_key='entryPoint', optional=True, convert=self.split_command)
        self.set(data, 'command', optional=True, convert=self.split_command)
        self.set(data, 'privileged', default=False, convert=bool)
        data['volumesFrom'] = self.get_volumesFrom()
        self.set(data, 'user', optional=True, convert=str)
        if 'logging' in self.data:
            data['logConfiguration'] = self.get_logConfiguration()
        return data, {}


class TaskDefinitionAdapter(Adapter):
    """
    Build a task definition from the parts of the application file that describe it::

        {
            'family': 'my-app',                 the application id
            'task_role_arn': 'arn:...',         [optional] from the scheduler: section
            'containers': [...],                the app: stanza with name "app", then additional_containers:
            'volumes': {...},                   the top level volumes: section
        }

    ``volumes:`` maps a volume name to either a host path or ``{'source_path': ...}``.  A volume with
    no source path gets a docker managed scratch volume.

    Keyword Args:
        tag: the image tag to deploy for the ``app`` container
    """

    def __init__(self, data: Dict[str, Any], tag: str = None, **kwargs) -> None:
        super().__init__(data, **kwargs)
        self.tag = tag

    def get_volumes(self) -> List[Dict[str, Any]]:
        volumes = []
        for name, config in (self.data.get('volumes', None) or {}).items():
            if isinstance(config, str):
                source_path: Optional[str] = config
            elif isinstance(config, dict) or config is None:
                source_path = (config or {}).get('source_path', None)
            else:
                raise self.SchemaException(f'volume "{name}": must be a host path or a mapping')
            volume: Dict[str, Any] = {'name': name, 'host': {}}
            if source_path:
                volume['host']['sourcePath'] = source_path
            volumes.append(volume)
        return volumes

    def convert(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        data: Dict[str, Any] = {}
        self.set(data, 'family')
        self.set(data, 'task_role_arn', dest_key='taskRoleArn', optional=True)
        data['volumes'] = self.get_volumes()
        containers = self.data.get('containers', None)
        if not containers:
            raise self.SchemaException(f'task definition "{data["family"]}": needs at least one container')
        names = set()
        container_definitions = []
        for container in containers:
            adapter = ContainerDefinitionAdapter(
                container,
                task_definition_data=data,
                tag=self.tag if container.get('name', 'app') == 'app' else None
            )
            container_data, _ = adapter.convert()
            if container_data['name'] in names:
                raise self.SchemaException(f'container "{container_data["name"]}" is defined more than once')
            names.add(container_data['name'])
            container_definitions.append(ContainerDefinition(container_data))
        return data, {'containers': container_definitions}


class ServiceAdapter(Adapter):
    """
    Build a service from the ``scheduler:`` section of the application file.

    Keyword Args:
        service_name: the name of the service; this is the application id
    """

    DEPLOYMENT_CONFIGURATION_KEYS: Dict[str, str] = {
        'maximum_percent': 'maximumPercent',
        'minimum_healthy_percent': 'minimumHealthyPercent',
    }

    def __init__(self, data: Dict[str, Any], service_name: str = None, **kwargs) -> None:
        super().__init__(data, **kwargs)
        self.service_name = service_name

    def get_desiredCount(self) -> int:
        if 'desired_count' not in self.data:
            raise self.SchemaException('scheduler: "desired_count" is required')
        value = self.data['desired_count']
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise self.SchemaException('scheduler: "desired_count" must be an integer greater than or equal to 0')
        return value

    def get_deploymentConfiguration(self) -> Dict[str, Any]:
        """
        Only the keys that are set in the application file end up here: ECS fills in defaults for the
        rest, and we don't want to fight it over them.
        """
        source = self.data.get('deployment_configuration', None) or {}
        deploymentConfiguration: Dict[str, Any] = {}
        for key, dest_key in self.DEPLOYMENT_CONFIGURATION_KEYS.items():
            if source.get(key, None) is not None:
                try:
                    deploymentConfiguration[dest_key] = int(source[key])
                except (TypeError, ValueError):
                    raise self.SchemaException(f'scheduler: deployment_configuration: "{key}" must be an integer')
        breaker = source.get('circuit_breaker', None)
        if breaker is not None:
            deploymentConfiguration['deploymentCircuitBreaker'] = {
                'enable': bool(breaker.get('enable', True)),
                'rollback': bool(breaker.get('rollback', False)),
            }
        return deploymentConfiguration

    def convert(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        if not self.service_name:
            raise self.SchemaException('scheduler: service needs a name')
        data: Dict[str, Any] = {}
        data['serviceName'] = self.service_name
        self.set(data, 'cluster', default='default')
        data['desiredCount'] = self.get_desiredCount()
        self.set(data, 'role', optional=True)
        data['deploymentConfiguration'] = self.get_deploymentConfiguration()
        self.set(data, 'placement_constraints', dest_key='placementConstraints', default=[], convert=list)
        self.set(data, 'placement_strategy', dest_key='placementStrategy', default=[], convert=list)
        return data, {}
