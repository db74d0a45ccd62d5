import logging
import threading
from typing import Any, Dict, List, Optional

import deckhand.core.adapters  # noqa:F401  # pylint:disable=unused-import
from deckhand.registry import scheduler_registry

from .abstract import AbstractScheduler, CREATED, UNCHANGED, UPDATED  # noqa:F401
from .ecs import EcsScheduler  # noqa:F401


def deploy(
    application_id: str,
    scheduler_config: Dict[str, Any],
    containers: List[Dict[str, Any]],
    volumes: Dict[str, Any] = None,
    force: bool = False,
    dry_run: bool = False,
    timeout: Optional[float] = None,
    logger: logging.Logger = None,
    cancel_event: threading.Event = None,
    tag: str = None,
    **kwargs
) -> bool:
    """
    Deploy ``containers`` as application ``application_id`` with the scheduler named by the ``type`` key
    of ``scheduler_config``.  Any extra ``kwargs`` go to the scheduler's constructor.

    Raises:
        NoSuchScheduler: we have no scheduler for ``scheduler_config['type']``
        OperationFailed: a call that changes the remote system failed
        DeploymentError: the deployment started but did not complete

    Returns:
        ``True`` once the deployment has completed.
    """
    scheduler_class = scheduler_registry.get(scheduler_config.get('type', 'ecs'))
    scheduler: AbstractScheduler = scheduler_class(
        application_id,
        scheduler_config,
        volumes=volumes,
        force=force,
        dry_run=dry_run,
        timeout=timeout,
        logger=logger,
        cancel_event=cancel_event,
        tag=tag,
        **kwargs
    )
    return scheduler.deploy(containers)
