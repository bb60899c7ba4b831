from .environments import Environment
from .realtime import RealtimePaths
from .redis_keys import RedisKeys

__all__ = ["Environment", "RealtimePaths", "RedisKeys"]
