import unittest

from botocore.exceptions import ClientError, EndpointConnectionError
from mock import Mock
from testfixtures import compare

from deckhand.core.lookup import Found, NotFound, TransportError
from deckhand.core.models import ContainerDefinition, TaskDefinition, TaskDefinitionManager


class TestTaskDefinition(unittest.TestCase):

    def setUp(self):
        self.containers = [
            ContainerDefinition({'name': 'app', 'image': 'web:1.0'}),
            ContainerDefinition({'name': 'sidecar', 'image': 'nginx:1.25'}),
        ]
        self.data = {
            'family': 'hello-app',
            'volumes': [
                {'name': 'data', 'host': {'sourcePath': '/var/data'}},
                {'name': 'scratch', 'host': {}},
            ],
        }

    def test_pk_without_revision(self):
        compare(TaskDefinition(self.data, containers=self.containers).pk, 'hello-app')

    def test_pk_with_revision(self):
        compare(TaskDefinition(dict(self.data, revision=3), containers=self.containers).pk, 'hello-app:3')

    def test_render_keeps_container_order(self):
        data = TaskDefinition(self.data, containers=self.containers).render()
        compare([c['name'] for c in data['containerDefinitions']], ['app', 'sidecar'])
        self.assertNotIn('taskRoleArn', data)
        compare(data['volumes'], self.data['volumes'])

    def test_render_with_task_role(self):
        data = TaskDefinition(dict(self.data, taskRoleArn='arn:role'), containers=self.containers).render()
        compare(data['taskRoleArn'], 'arn:role')

    def test_volume_order_does_not_matter(self):
        other = dict(self.data, volumes=list(reversed(self.data['volumes'])))
        self.assertEqual(
            TaskDefinition(other, containers=self.containers),
            TaskDefinition(self.data, containers=self.containers)
        )

    def test_revision_and_arn_are_ignored(self):
        live = dict(
            self.data,
            revision=7,
            taskDefinitionArn='arn:aws:ecs:us-west-2:012345678901:task-definition/hello-app:7',
            status='ACTIVE'
        )
        self.assertEqual(
            TaskDefinition(live, containers=self.containers),
            TaskDefinition(self.data, containers=self.containers)
        )

    def test_diff(self):
        other = TaskDefinition(dict(self.data, taskRoleArn='arn:role'), containers=self.containers)
        mine = TaskDefinition(self.data, containers=self.containers)
        compare(mine.diff(other), {'$update': {'taskRoleArn': None}})


class TestTaskDefinitionManager(unittest.TestCase):

    def setUp(self):
        self.client = Mock()
        self.manager = TaskDefinitionManager(client=self.client)

    def test_get_found(self):
        self.client.describe_task_definition.return_value = {
            'taskDefinition': {
                'family': 'hello-app',
                'revision': 2,
                'taskDefinitionArn': 'arn:td:2',
                'containerDefinitions': [{'name': 'app', 'image': 'web:1.0'}],
                'volumes': [],
            }
        }
        result = self.manager.get('hello-app')
        self.assertIsInstance(result, Found)
        compare(result.value.pk, 'hello-app:2')
        compare([c.name for c in result.value.containers], ['app'])
        self.client.describe_task_definition.assert_called_once_with(taskDefinition='hello-app')

    def test_get_client_exception_is_not_found(self):
        self.client.describe_task_definition.side_effect = ClientError(
            {'Error': {'Code': 'ClientException', 'Message': 'Unable to describe task definition.'}},
            'DescribeTaskDefinition'
        )
        self.assertIsInstance(self.manager.get('hello-app'), NotFound)

    def test_get_other_errors_are_transport_errors(self):
        error = EndpointConnectionError(endpoint_url='https://ecs.us-west-2.amazonaws.com')
        self.client.describe_task_definition.side_effect = error
        result = self.manager.get('hello-app')
        self.assertIsInstance(result, TransportError)
        self.assertIs(result.error, error)

    def test_save(self):
        self.client.register_task_definition.return_value = {'taskDefinition': {'taskDefinitionArn': 'arn:td:3'}}
        td = TaskDefinition({'family': 'hello-app'}, containers=[ContainerDefinition({'name': 'app', 'image': 'web'})])
        compare(self.manager.save(td), 'arn:td:3')
        self.client.register_task_definition.assert_called_once_with(
            family='hello-app',
            containerDefinitions=[{'name': 'app', 'image': 'web'}],
            volumes=[],
        )
