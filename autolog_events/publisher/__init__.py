"""
Datasource event publishing
===========================

- EventPublisher: lifecycle, registration and broadcast
- SubscriberRegistry: thread-safe subscriber map
- LivenessSweeper: background eviction of dead subscribers
- DatasourceListener: engine listener feeding the publisher
"""

from .registry import SubscriberRegistry
from .sweeper import LivenessSweeper
from .listener import DatasourceListener, extract_datasource_events, to_uri
from .core import EventPublisher, get_publisher, init, stop, register

__all__ = [
    'EventPublisher',
    'SubscriberRegistry',
    'LivenessSweeper',
    'DatasourceListener',
    'extract_datasource_events',
    'to_uri',
    'get_publisher',
    'init',
    'stop',
    'register',
]
