"""
Structural comparison of desired and live state.

Nothing in here knows about any particular scheduler: we only ever look at what a model's
``render_for_diff()`` returns.  Each backend's models are responsible for making the desired and
the live versions of an object render to the same canonical shape.
"""
from typing import Any, Dict, List, Optional, Tuple

from deckhand.core.models import Model


#: The key in a definition's ``render_for_diff()`` that holds its containers, keyed by name
CONTAINERS_KEY = 'containerDefinitions'


class Comparison:
    """
    The outcome of comparing a desired definition to a live one.  ``reasons`` lists every
    difference we found, in a form suitable for logging.
    """

    def __init__(self) -> None:
        self.reasons: List[str] = []

    @property
    def changed(self) -> bool:
        return bool(self.reasons)

    def __bool__(self) -> bool:
        return self.changed

    def __repr__(self) -> str:
        return 'Comparison(changed={}, reasons={!r})'.format(self.changed, self.reasons)


def compare_task_definitions(desired: Model, live: Optional[Model]) -> Comparison:
    """
    Compare the definition we want against the live one.

    Containers are joined on their names: a container on only one side is a difference, and so is
    any differing field of a container on both sides.  Every other top level key of
    ``render_for_diff()`` must match exactly.

    Args:
        desired: the definition built from our configuration
        live: the definition currently registered, or ``None`` if there is none

    Returns:
        A :py:class:`Comparison`.
    """
    comparison = Comparison()
    if live is None:
        comparison.reasons.append('no live task definition')
        return comparison
    desired_data = desired.render_for_diff()
    live_data = live.render_for_diff()
    desired_containers = desired_data.pop(CONTAINERS_KEY, {})
    live_containers = live_data.pop(CONTAINERS_KEY, {})
    for name in desired_containers:
        if name not in live_containers:
            comparison.reasons.append(f'container "{name}" is new')
    for name in live_containers:
        if name not in desired_containers:
            comparison.reasons.append(f'container "{name}" would be removed')
    for name, desired_container in desired_containers.items():
        if name in live_containers:
            comparison.reasons.extend(
                f'container "{name}": {reason}' for reason in field_differences(desired_container, live_containers[name])
            )
    comparison.reasons.extend(field_differences(desired_data, live_data))
    return comparison


def field_differences(desired: Dict[str, Any], live: Dict[str, Any]) -> List[str]:
    reasons = []
    for key in sorted(set(desired) | set(live)):
        if desired.get(key) != live.get(key):
            reasons.append(f'{key}: {live.get(key)!r} -> {desired.get(key)!r}')
    return reasons


def compare_services(desired: Model, live: Model) -> Dict[str, Tuple[Any, Any]]:
    """
    Compare the reconciled parameters of a managed service.

    Nested mappings (deployment configuration, for example) are only compared on the keys the
    desired side sets: the remote system fills in its own defaults for anything we leave out, and
    those are not drift.

    Returns:
        A dict mapping the name of each differing field to a ``(live value, desired value)`` tuple.
        An empty dict means the service does not need an update.
    """
    desired_data = desired.render_for_diff()
    live_data = live.render_for_diff()
    changes: Dict[str, Tuple[Any, Any]] = {}
    for key, desired_value in desired_data.items():
        live_value = live_data.get(key)
        compared = live_value
        if isinstance(desired_value, dict) and isinstance(live_value, dict):
            compared = {k: live_value.get(k) for k in desired_value}
        if desired_value != compared:
            changes[key] = (live_value, desired_value)
    return changes
