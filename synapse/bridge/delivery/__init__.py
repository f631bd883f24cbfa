"""Event delivery: observer registry, delivery channel, pub/sub relay."""

from synapse.bridge.delivery.channel import DeliveryChannel, synthesize_session
from synapse.bridge.delivery.observers import Observer, ObserverRegistry
from synapse.bridge.delivery.relay import RedisRelay, Relay

__all__ = ["DeliveryChannel", "Observer", "ObserverRegistry", "RedisRelay", "Relay", "synthesize_session"]
