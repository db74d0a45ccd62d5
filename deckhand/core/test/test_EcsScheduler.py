import logging
import unittest

from botocore.exceptions import ClientError
from mock import Mock
from testfixtures import LogCapture, compare

from deckhand import __version__
from deckhand.core.schedulers import EcsScheduler, deploy
from deckhand.exceptions import DeploymentFailed, DeploymentTimedOut, OperationFailed


APP_ID = 'hello-app'
CLUSTER_ARN = 'arn:aws:ecs:us-west-2:012345678901:cluster/eagletmt'
SERVICE_ARN = 'arn:aws:ecs:us-west-2:012345678901:service/eagletmt/hello-app'
TD_ARN = 'arn:aws:ecs:us-west-2:012345678901:task-definition/hello-app:1'
NEW_TD_ARN = 'arn:aws:ecs:us-west-2:012345678901:task-definition/hello-app:2'


def scheduler_options(**kwargs):
    options = {
        'type': 'ecs',
        'cluster': 'eagletmt',
        'desired_count': 1,
        'role': 'ECSServiceRole',
        'poll_interval': 1,
    }
    options.update(kwargs)
    return options


def containers():
    return [{'name': 'app', 'image': 'busybox', 'cpu': 32, 'memory': 64}]


def live_task_definition(memory=64):
    return {
        'taskDefinition': {
            'taskDefinitionArn': TD_ARN,
            'family': APP_ID,
            'revision': 1,
            'status': 'ACTIVE',
            'containerDefinitions': [
                {
                    'name': 'app',
                    'image': 'busybox:latest',
                    'cpu': 32,
                    'memory': memory,
                    'portMappings': [],
                    'essential': True,
                    'environment': [],
                    'mountPoints': [],
                    'volumesFrom': [],
                    'dockerLabels': {'deckhand.version': __version__},
                }
            ],
            'volumes': [],
        }
    }


def live_service(desired_count=1, task_definition=TD_ARN):
    return {
        'failures': [],
        'services': [
            {
                'serviceName': APP_ID,
                'serviceArn': SERVICE_ARN,
                'clusterArn': CLUSTER_ARN,
                'status': 'ACTIVE',
                'desiredCount': desired_count,
                'taskDefinition': task_definition,
                'deploymentConfiguration': {'maximumPercent': 200, 'minimumHealthyPercent': 100},
                'events': [],
                'deployments': [
                    {
                        'status': 'PRIMARY',
                        'desiredCount': desired_count,
                        'runningCount': desired_count,
                        'pendingCount': 0,
                        'taskDefinition': task_definition,
                    }
                ],
            }
        ]
    }


def stable_service(task_definition=TD_ARN, desired_count=1):
    return live_service(desired_count=desired_count, task_definition=task_definition)


def updated_service():
    return {
        'service': {
            'serviceName': APP_ID,
            'clusterArn': CLUSTER_ARN,
            'serviceArn': SERVICE_ARN,
            'events': [],
        }
    }


def not_found():
    return ClientError(
        {'Error': {'Code': 'ClientException', 'Message': 'Unable to describe task definition'}},
        'DescribeTaskDefinition'
    )


class EcsSchedulerTestCase(unittest.TestCase):

    def setUp(self):
        self.client = Mock()
        self.initial = {'failures': [], 'services': []}
        self.polls = []
        self.client.describe_services.side_effect = self.describe_services
        self.client.register_task_definition.return_value = {'taskDefinition': {'taskDefinitionArn': TD_ARN}}
        self.client.create_service.return_value = {
            'service': {
                'serviceName': APP_ID,
                'clusterArn': CLUSTER_ARN,
                'serviceArn': SERVICE_ARN,
                'status': 'ACTIVE',
                'desiredCount': 0,
                'events': [],
            }
        }
        self.client.update_service.return_value = updated_service()
        self.sleep = Mock()
        self.logger = logging.getLogger('deckhand.test.scheduler')
        self.log = LogCapture()
        self.addCleanup(self.log.uninstall)

    def describe_services(self, cluster=None, services=None):
        if cluster == 'eagletmt':
            return self.initial
        compare(cluster, CLUSTER_ARN)
        compare(services, [SERVICE_ARN])
        return self.polls.pop(0)

    def scheduler(self, options=None, **kwargs):
        return EcsScheduler(
            APP_ID,
            options if options is not None else scheduler_options(),
            client=self.client,
            sleep=self.sleep,
            logger=self.logger,
            **kwargs
        )

    @property
    def messages(self):
        return [r.getMessage() for r in self.log.records]

    def assertLogged(self, text):
        self.assertTrue(
            any(text in message for message in self.messages),
            f'"{text}" not in {self.messages!r}'
        )


class TestEcsScheduler_initial_deploy(EcsSchedulerTestCase):

    def setUp(self):
        super().setUp()
        self.client.describe_task_definition.side_effect = not_found()
        self.polls = [stable_service()]

    def test_deploy_returns_True(self):
        self.assertTrue(self.scheduler().deploy(containers()))

    def test_registers_task_definition(self):
        self.scheduler().deploy(containers())
        self.client.describe_task_definition.assert_called_once_with(taskDefinition=APP_ID)
        self.client.register_task_definition.assert_called_once_with(
            family=APP_ID,
            containerDefinitions=[{
                'name': 'app',
                'image': 'busybox:latest',
                'cpu': 32,
                'memory': 64,
                'links': [],
                'portMappings': [],
                'essential': True,
                'environment': [],
                'dockerLabels': {'deckhand.version': __version__},
                'mountPoints': [],
                'privileged': False,
                'volumesFrom': [],
            }],
            volumes=[],
        )

    def test_creates_service_with_zero_tasks_then_scales_it(self):
        self.scheduler().deploy(containers())
        self.client.create_service.assert_called_once_with(
            cluster='eagletmt',
            serviceName=APP_ID,
            taskDefinition=TD_ARN,
            desiredCount=0,
            role='ECSServiceRole',
            deploymentConfiguration={},
            placementConstraints=[],
            placementStrategy=[],
        )
        self.client.update_service.assert_called_once_with(
            cluster='eagletmt',
            service=APP_ID,
            taskDefinition=TD_ARN,
            desiredCount=1,
            deploymentConfiguration={},
        )

    def test_polls_with_arns_from_update(self):
        self.scheduler().deploy(containers())
        compare(self.client.describe_services.call_count, 2)
        self.client.describe_services.assert_called_with(cluster=CLUSTER_ARN, services=[SERVICE_ARN])
        compare(self.polls, [])

    def test_logs_progress(self):
        self.scheduler().deploy(containers())
        self.assertLogged('Registered task definition: ' + TD_ARN)
        self.assertLogged('Created service')
        self.assertLogged('Updated service: ' + SERVICE_ARN)
        self.assertLogged('PRIMARY desired=1 running=1 pending=0')
        self.assertLogged('Deployment completed')

    def test_task_role_arn(self):
        options = scheduler_options(task_role_arn='arn:aws:iam::012345678901:role/hello-app')
        self.scheduler(options=options).deploy(containers())
        _, kwargs = self.client.register_task_definition.call_args
        compare(kwargs['taskRoleArn'], 'arn:aws:iam::012345678901:role/hello-app')

    def test_tag(self):
        self.scheduler(tag='1.2.3').deploy(containers())
        _, kwargs = self.client.register_task_definition.call_args
        compare(kwargs['containerDefinitions'][0]['image'], 'busybox:1.2.3')


class TestEcsScheduler_inactive_service(EcsSchedulerTestCase):

    def test_inactive_service_is_created_again(self):
        self.initial = live_service()
        self.initial['services'][0]['status'] = 'INACTIVE'
        self.client.describe_task_definition.return_value = live_task_definition()
        self.polls = [stable_service()]
        self.scheduler().deploy(containers())
        self.client.register_task_definition.assert_not_called()
        compare(self.client.create_service.call_count, 1)
        compare(self.client.update_service.call_count, 1)


class TestEcsScheduler_no_changes(EcsSchedulerTestCase):

    def setUp(self):
        super().setUp()
        self.initial = live_service()
        self.client.describe_task_definition.side_effect = lambda **kwargs: live_task_definition()

    def test_does_nothing(self):
        self.assertTrue(self.scheduler().deploy(containers()))
        self.client.register_task_definition.assert_not_called()
        self.client.create_service.assert_not_called()
        self.client.update_service.assert_not_called()
        compare(self.client.describe_services.call_count, 1)

    def test_logs(self):
        self.scheduler().deploy(containers())
        self.assertLogged("Task definition isn't changed: " + TD_ARN)
        self.assertLogged("Service isn't changed")
        self.assertLogged('Deployment completed')

    def test_is_idempotent(self):
        self.scheduler().deploy(containers())
        self.scheduler().deploy(containers())
        self.client.register_task_definition.assert_not_called()
        self.client.update_service.assert_not_called()
        compare(self.client.describe_services.call_count, 2)

    def test_force_updates_and_polls(self):
        self.polls = [stable_service()]
        self.scheduler(force=True).deploy(containers())
        self.client.register_task_definition.assert_not_called()
        self.client.update_service.assert_called_once_with(
            cluster='eagletmt',
            service=APP_ID,
            taskDefinition=TD_ARN,
            desiredCount=1,
            deploymentConfiguration={},
        )
        compare(self.client.describe_services.call_count, 2)
        self.assertLogged('Deployment completed')

    def test_unset_deployment_configuration_keys_are_not_drift(self):
        options = scheduler_options(deployment_configuration={'maximum_percent': 200})
        self.scheduler(options=options).deploy(containers())
        self.client.update_service.assert_not_called()


class TestEcsScheduler_desired_count_drift(EcsSchedulerTestCase):

    def setUp(self):
        super().setUp()
        self.initial = live_service(desired_count=0)
        self.client.describe_task_definition.return_value = live_task_definition()
        self.polls = [stable_service()]

    def test_updates_service(self):
        self.scheduler().deploy(containers())
        self.client.register_task_definition.assert_not_called()
        self.client.create_service.assert_not_called()
        self.client.update_service.assert_called_once_with(
            cluster='eagletmt',
            service=APP_ID,
            taskDefinition=TD_ARN,
            desiredCount=1,
            deploymentConfiguration={},
        )

    def test_logs_the_difference(self):
        self.scheduler().deploy(containers())
        self.assertLogged('desiredCount changed: 0 -> 1')
        self.assertLogged('Deployment completed')


class TestEcsScheduler_container_drift(EcsSchedulerTestCase):

    def setUp(self):
        super().setUp()
        self.initial = live_service()
        self.client.describe_task_definition.return_value = live_task_definition(memory=128)
        self.client.register_task_definition.return_value = {'taskDefinition': {'taskDefinitionArn': NEW_TD_ARN}}
        self.polls = [stable_service(task_definition=NEW_TD_ARN)]

    def test_registers_and_updates(self):
        self.scheduler().deploy(containers())
        compare(self.client.register_task_definition.call_count, 1)
        self.client.update_service.assert_called_once_with(
            cluster='eagletmt',
            service=APP_ID,
            taskDefinition=NEW_TD_ARN,
            desiredCount=1,
            deploymentConfiguration={},
        )

    def test_logs_the_difference(self):
        self.scheduler().deploy(containers())
        self.assertLogged('container "app": memory: 128 -> 64')
        self.assertLogged('taskDefinition changed')
        self.assertLogged('Registered task definition: ' + NEW_TD_ARN)


class TestEcsScheduler_dry_run(EcsSchedulerTestCase):

    def setUp(self):
        super().setUp()
        self.client.describe_task_definition.side_effect = not_found()

    def test_makes_no_changes(self):
        self.assertTrue(self.scheduler(dry_run=True).deploy(containers()))
        self.client.register_task_definition.assert_not_called()
        self.client.create_service.assert_not_called()
        self.client.update_service.assert_not_called()
        compare(self.client.describe_services.call_count, 1)

    def test_logs_skipped_calls(self):
        self.scheduler(dry_run=True).deploy(containers())
        self.assertLogged('ecs.register_task_definition(')
        self.assertLogged('ecs.create_service(')
        self.assertLogged('ecs.update_service(')
        self.assertLogged('Deployment completed (dry-run)')


class TestEcsScheduler_lookup_errors(EcsSchedulerTestCase):

    def test_task_definition_lookup_error_means_register(self):
        self.client.describe_task_definition.side_effect = ClientError(
            {'Error': {'Code': 'ThrottlingException', 'Message': 'Rate exceeded'}},
            'DescribeTaskDefinition'
        )
        self.polls = [stable_service()]
        self.scheduler().deploy(containers())
        compare(self.client.register_task_definition.call_count, 1)
        warnings = [r.getMessage() for r in self.log.records if r.levelname == 'WARNING']
        compare(len(warnings), 1)
        self.assertIn('Rate exceeded', warnings[0])

    def test_service_lookup_error_is_fatal(self):
        self.client.describe_services.side_effect = ClientError(
            {'Error': {'Code': 'ThrottlingException', 'Message': 'Rate exceeded'}},
            'DescribeServices'
        )
        with self.assertRaises(OperationFailed):
            self.scheduler().deploy(containers())
        self.client.register_task_definition.assert_not_called()
        self.assertLogged('Deployment failed: Could not describe service')

    def test_register_error_is_fatal(self):
        self.client.describe_task_definition.side_effect = not_found()
        self.client.register_task_definition.side_effect = ClientError(
            {'Error': {'Code': 'ClientException', 'Message': 'Invalid container definition'}},
            'RegisterTaskDefinition'
        )
        with self.assertRaises(OperationFailed) as cm:
            self.scheduler().deploy(containers())
        self.assertIn('Invalid container definition', str(cm.exception))
        self.client.create_service.assert_not_called()
        self.assertLogged('Deployment failed: Could not register a new revision')

    def test_create_service_error_is_fatal(self):
        self.client.describe_task_definition.side_effect = not_found()
        self.client.create_service.side_effect = ClientError(
            {'Error': {'Code': 'InvalidParameterException', 'Message': 'Unable to assume role'}},
            'CreateService'
        )
        with self.assertRaises(OperationFailed) as cm:
            self.scheduler().deploy(containers())
        self.assertIn('Unable to assume role', str(cm.exception))
        self.client.update_service.assert_not_called()
        self.assertLogged('Deployment failed: Could not create service')
        self.assertNotIn('Deployment completed', self.messages)


class TestEcsScheduler_poll_outcomes(EcsSchedulerTestCase):

    def setUp(self):
        super().setUp()
        self.initial = live_service(desired_count=0)
        self.client.describe_task_definition.return_value = live_task_definition()

    def test_waits_until_stable(self):
        converging = live_service()
        converging['services'][0]['deployments'][0]['runningCount'] = 0
        converging['services'][0]['deployments'].append({
            'status': 'ACTIVE',
            'desiredCount': 0,
            'runningCount': 1,
            'taskDefinition': TD_ARN,
        })
        self.polls = [converging, stable_service()]
        self.scheduler().deploy(containers())
        compare(self.client.describe_services.call_count, 3)
        self.sleep.assert_called_once_with(1.0)

    def test_failed_rollout(self):
        failed = live_service()
        failed['services'][0]['deployments'][0]['runningCount'] = 0
        failed['services'][0]['deployments'][0]['rolloutState'] = 'FAILED'
        failed['services'][0]['deployments'][0]['rolloutStateReason'] = 'tasks failed to start'
        self.polls = [failed]
        with self.assertRaises(DeploymentFailed) as cm:
            self.scheduler().deploy(containers())
        self.assertIn('tasks failed to start', str(cm.exception))
        self.assertLogged('Deployment failed: ')

    def test_missing_service(self):
        self.polls = [{'failures': [{'arn': SERVICE_ARN, 'reason': 'MISSING'}], 'services': []}]
        with self.assertRaises(DeploymentFailed) as cm:
            self.scheduler().deploy(containers())
        self.assertIn('MISSING', str(cm.exception))

    def test_timeout(self):
        converging = live_service()
        converging['services'][0]['deployments'][0]['runningCount'] = 0
        self.polls = [converging] * 10
        now = [0.0]
        self.sleep.side_effect = lambda delay: now.__setitem__(0, now[0] + delay)
        scheduler = self.scheduler(timeout=2.5, clock=lambda: now[0])
        with self.assertRaises(DeploymentTimedOut) as cm:
            scheduler.deploy(containers())
        compare(len(self.polls), 7)
        compare(now[0], 2.5)
        self.assertIsNotNone(cm.exception.last_response)
        self.assertLogged('Deployment failed: ')


class TestEcsScheduler_deploy(EcsSchedulerTestCase):

    def test_deploy_picks_scheduler_by_type(self):
        self.client.describe_task_definition.side_effect = not_found()
        self.polls = [stable_service()]
        result = deploy(
            APP_ID,
            scheduler_options(),
            containers(),
            volumes={},
            logger=self.logger,
            client=self.client,
            sleep=self.sleep,
        )
        self.assertTrue(result)
        self.assertLogged('Deployment completed')
