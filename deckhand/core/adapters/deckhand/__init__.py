from deckhand.registry import importer_registry as registry

from .ecs import (
    ContainerDefinitionAdapter,
    ServiceAdapter,
    TaskDefinitionAdapter,
)

# -----------------------
# Adapter registrations
# -----------------------

# ecs
registry.register("ContainerDefinition", "deckhand", ContainerDefinitionAdapter)
registry.register("TaskDefinition", "deckhand", TaskDefinitionAdapter)
registry.register("Service", "deckhand", ServiceAdapter)
