from .abstract import Manager, Model  # noqa:F401
from .ecs import *  # noqa:F401,F403
