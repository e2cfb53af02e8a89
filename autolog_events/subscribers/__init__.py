"""
Subscriber handles for autolog-events
=====================================

- SubscriberHandle: the interface the publisher broadcasts to
- CallbackSubscriber: in-process callables
- HttpSubscriber: remote endpoint over HTTP
- MlflowDatasourceSubscriber: records reads as MLflow run tags
"""

from .base import SubscriberHandle, CallbackSubscriber
from .http import HttpSubscriber
from .mlflow_subscriber import MlflowDatasourceSubscriber

__all__ = [
    'SubscriberHandle',
    'CallbackSubscriber',
    'HttpSubscriber',
    'MlflowDatasourceSubscriber',
]
