"""
Configuration management for autolog-events
Handles publisher, subscriber, logging and metrics settings
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


class Config:
    """
    Central configuration manager for autolog-events

    This class:
    - Loads the YAML defaults shipped with the package
    - Applies environment variable overrides
    - Validates the values the publisher depends on
    """

    def __init__(self, config_file: Optional[str] = None):
        self.config_dir = Path(__file__).parent
        self.config_file = Path(config_file) if config_file else self.config_dir / 'autolog.yml'

        self.settings = self._load_yaml(self.config_file)

        logger.debug(f"Configuration loaded from: {self.config_file}")

    def _load_yaml(self, config_path: Path) -> Dict[str, Any]:
        """Load YAML configuration file with error handling"""
        if config_path.exists():
            try:
                with open(config_path, 'r') as f:
                    content = yaml.safe_load(f)
                    return content or {}
            except yaml.YAMLError as e:
                logger.error(f"Error loading {config_path.name}: {e}")
                return {}
        else:
            logger.warning(f"Config file not found: {config_path}")
            return {}

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Get a top-level section of the YAML settings"""
        return self.settings.get(section_name) or {}

    def get_publisher_config(self) -> Dict[str, Any]:
        """Get publisher configuration with environment variable overrides"""
        publisher_config = self.get_section('publisher')

        return {
            'gc_interval_seconds': float(
                os.getenv('AUTOLOG_GC_INTERVAL_SECONDS') or publisher_config.get('gc_interval_seconds', 1.0)
            ),
            'notify_timeout_seconds': float(
                os.getenv('AUTOLOG_NOTIFY_TIMEOUT_SECONDS') or publisher_config.get('notify_timeout_seconds', 5.0)
            ),
            'ping_timeout_seconds': float(
                os.getenv('AUTOLOG_PING_TIMEOUT_SECONDS') or publisher_config.get('ping_timeout_seconds', 5.0)
            ),
        }

    def get_http_subscriber_config(self) -> Dict[str, Any]:
        """Get HTTP subscriber configuration with environment variable overrides"""
        http_config = self.get_section('subscribers').get('http') or {}

        return {
            'timeout_seconds': float(
                os.getenv('AUTOLOG_HTTP_TIMEOUT_SECONDS') or http_config.get('timeout_seconds', 2.0)
            ),
        }

    def get_mlflow_subscriber_config(self) -> Dict[str, Any]:
        """Get MLflow subscriber configuration with environment variable overrides"""
        mlflow_config = self.get_section('subscribers').get('mlflow') or {}

        return {
            'tag_key': os.getenv('AUTOLOG_MLFLOW_TAG_KEY') or mlflow_config.get('tag_key', 'datasourceInfo'),
            'max_tag_length': int(mlflow_config.get('max_tag_length', 5000)),
        }

    def get_logging_config(self) -> Dict[str, Any]:
        logging_config = self.get_section('logging')

        return {
            'level': os.getenv('AUTOLOG_LOG_LEVEL') or logging_config.get('level', 'INFO'),
            'log_dir': os.getenv('AUTOLOG_LOG_DIR') or logging_config.get('log_dir'),
            'json': bool(logging_config.get('json', False)),
        }

    def get_metrics_config(self) -> Dict[str, Any]:
        metrics_config = self.get_section('metrics')

        return {
            'enabled': str(
                os.getenv('AUTOLOG_METRICS_ENABLED') or metrics_config.get('enabled', False)
            ).lower() in ('1', 'true', 'yes'),
            'port': int(os.getenv('AUTOLOG_METRICS_PORT') or metrics_config.get('port', 8000)),
        }

    def validate_config(self) -> Dict[str, bool]:
        """Validate that the configured values are usable"""
        validation_results = {}

        try:
            publisher_config = self.get_publisher_config()
            validation_results['publisher'] = (
                publisher_config['gc_interval_seconds'] > 0
                and publisher_config['notify_timeout_seconds'] > 0
                and publisher_config['ping_timeout_seconds'] > 0
            )
        except (TypeError, ValueError):
            validation_results['publisher'] = False

        try:
            validation_results['http_subscriber'] = self.get_http_subscriber_config()['timeout_seconds'] > 0
        except (TypeError, ValueError):
            validation_results['http_subscriber'] = False

        try:
            mlflow_config = self.get_mlflow_subscriber_config()
            validation_results['mlflow_subscriber'] = bool(mlflow_config['tag_key']) and mlflow_config['max_tag_length'] > 0
        except (TypeError, ValueError):
            validation_results['mlflow_subscriber'] = False

        try:
            validation_results['metrics'] = 0 < self.get_metrics_config()['port'] < 65536
        except (TypeError, ValueError):
            validation_results['metrics'] = False

        return validation_results

    def print_config_summary(self):
        """Print a summary of the current configuration"""
        print("\n🔧 autolog-events Configuration Summary")
        print("=" * 50)

        publisher_config = self.get_publisher_config()
        print(f"Sweep interval: {publisher_config['gc_interval_seconds']}s")
        print(f"Notify timeout: {publisher_config['notify_timeout_seconds']}s")
        print(f"Ping timeout: {publisher_config['ping_timeout_seconds']}s")
        print(f"MLflow tag: {self.get_mlflow_subscriber_config()['tag_key']}")
        print(f"Metrics port: {self.get_metrics_config()['port']}")

        validation = self.validate_config()
        print(f"\nValidation: {sum(validation.values())}/{len(validation)} sections valid")
        for section, is_valid in validation.items():
            status = "✅" if is_valid else "❌"
            print(f"  {status} {section}")

        print("=" * 50)


# Global configuration instance
config = Config()

# Export for easy importing
__all__ = ['Config', 'config']
