import unittest

from mock import Mock
from testfixtures import compare

from deckhand.controllers.utils import handle_model_exceptions
from deckhand.exceptions import (
    ConfigProcessingFailed,
    DeploymentCancelled,
    DeploymentFailed,
    DeploymentTimedOut,
    OperationFailed,
)


class FakeController:

    def __init__(self, error=None):
        self.app = Mock()
        self.app.exit_code = 0
        self.error = error

    @handle_model_exceptions
    def deploy(self):
        if self.error:
            raise self.error
        return 'deployed'


class TestHandleModelExceptions(unittest.TestCase):

    def test_success(self):
        controller = FakeController()
        compare(controller.deploy(), 'deployed')
        compare(controller.app.exit_code, 0)

    def test_failure(self):
        controller = FakeController(DeploymentFailed('rollout failed'))
        controller.deploy()
        compare(controller.app.exit_code, 1)
        self.assertIn('rollout failed', controller.app.print.call_args[0][0])

    def test_timeout(self):
        controller = FakeController(DeploymentTimedOut('timed out'))
        controller.deploy()
        compare(controller.app.exit_code, 2)

    def test_cancelled(self):
        controller = FakeController(DeploymentCancelled('cancelled'))
        controller.deploy()
        compare(controller.app.exit_code, 130)

    def test_operation_failed(self):
        controller = FakeController(OperationFailed('could not register'))
        controller.deploy()
        compare(controller.app.exit_code, 1)

    def test_config_error(self):
        controller = FakeController(ConfigProcessingFailed('no such file'))
        controller.deploy()
        compare(controller.app.exit_code, 1)

    def test_unexpected_errors_propagate(self):
        controller = FakeController(ValueError('boom'))
        with self.assertRaises(ValueError):
            controller.deploy()
