"""
autolog-events - Datasource Autologging for Experiment Tracking
===============================================================

Listens to query executions of a host engine and tells every registered
subscriber which datasources were read, so experiment runs can record the
exact data they were trained on.

Key Features:
- 🔌 One engine listener per process, idempotent init/stop
- 📡 Fan-out of (path, version, format) to any number of subscribers
- 🛡️ Broken subscribers never affect queries or each other
- 🧹 Background liveness sweeping of dead subscribers
- 🏷️ MLflow subscriber that tags runs with their datasources
- 📈 Prometheus metrics for broadcasts, failures and evictions

Quick Start:
-----------
```python
from autolog_events import EventPublisher, MlflowDatasourceSubscriber
from autolog_events.engine import EngineSession

session = EngineSession.builder().app_name("training").get_or_create()

with EventPublisher() as publisher:
    subscriber = MlflowDatasourceSubscriber()
    publisher.register(subscriber)

    df = session.read.format("csv").option("header", "true").load("data/train")
    rows = df.filter("label > 0").collect()   # -> subscriber.notify(uri, "unknown", "csv")
```

Architecture:
- publisher/: EventPublisher, registry, liveness sweeper, engine listener
- subscribers/: subscriber handles (callback, HTTP, MLflow)
- engine/: local query engine with a listener bus
- monitoring/: Prometheus metrics
- config/: Configuration management (YAML + environment variables)
- utils/: Helper utilities (logging, validation)
"""

import sys
import warnings
import logging

__version__ = "1.0.0"
__description__ = "Datasource autologging event publisher for experiment tracking"

MIN_PYTHON_VERSION = (3, 9)
if sys.version_info < MIN_PYTHON_VERSION:
    raise RuntimeError(
        f"autolog-events requires Python {'.'.join(map(str, MIN_PYTHON_VERSION))} or higher. "
        f"You are running Python {'.'.join(map(str, sys.version_info[:2]))}."
    )

from .config import config, Config
from .errors import (
    AutologError,
    ConfigurationError,
    NotInitializedError,
    SubscriberNotifyError,
    SubscriberPingError,
    PlanExtractionError,
)
from .events import DatasourceEvent, UNKNOWN_VERSION
from .publisher import (
    EventPublisher,
    SubscriberRegistry,
    LivenessSweeper,
    DatasourceListener,
    get_publisher,
    init,
    stop,
    register,
)
from .subscribers import SubscriberHandle, CallbackSubscriber, HttpSubscriber, MlflowDatasourceSubscriber

# Validate configuration on import
_validation_results = config.validate_config()
_failed_sections = [section for section, valid in _validation_results.items() if not valid]
if _failed_sections:
    warnings.warn(
        f"Some autolog-events settings are invalid: {', '.join(_failed_sections)}. "
        f"Check autolog.yml and AUTOLOG_* environment variables.",
        UserWarning,
        stacklevel=2,
    )


def get_version():
    """Get the current version of autolog-events"""
    return __version__


def check_system_health():
    """
    Report configuration validity and the state of the default publisher

    Returns:
        dict: Health status of all components
    """
    publisher = get_publisher()
    health_status = {
        "version": __version__,
        "publisher_running": publisher.is_running,
        "subscribers": len(publisher.subscribers),
        "config_valid": True,
    }

    try:
        validation_results = config.validate_config()
        health_status["config_sections"] = validation_results
        health_status["config_valid"] = all(validation_results.values())
    except Exception as e:
        health_status["config_valid"] = False
        health_status["config_error"] = str(e)

    return health_status


def print_system_info():
    """Print a short status report"""
    health = check_system_health()
    print(f"\n🚀 autolog-events v{__version__}")
    print("=" * 50)
    print(f"Python: {sys.version.split()[0]}")
    print(f"Publisher running: {'✅' if health['publisher_running'] else '❌'}")
    print(f"Registered subscribers: {health['subscribers']}")
    for section, valid in health.get("config_sections", {}).items():
        print(f"  {'✅' if valid else '❌'} {section}")
    print("=" * 50)


__all__ = [
    # Publisher
    "EventPublisher",
    "SubscriberRegistry",
    "LivenessSweeper",
    "DatasourceListener",
    "get_publisher",
    "init",
    "stop",
    "register",
    # Subscribers
    "SubscriberHandle",
    "CallbackSubscriber",
    "HttpSubscriber",
    "MlflowDatasourceSubscriber",
    # Events and errors
    "DatasourceEvent",
    "UNKNOWN_VERSION",
    "AutologError",
    "ConfigurationError",
    "NotInitializedError",
    "SubscriberNotifyError",
    "SubscriberPingError",
    "PlanExtractionError",
    # Configuration and info
    "config",
    "Config",
    "__version__",
    "get_version",
    "check_system_health",
    "print_system_info",
]

# Auto-configure logging if not already configured
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

del warnings
