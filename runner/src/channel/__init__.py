from runner.src.channel.base import CommandChannel
from runner.src.channel.redis_channel import RedisChannel

__all__ = [
    "CommandChannel",
    "RedisChannel",
]
