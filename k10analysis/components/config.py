"""
Configuration management for the K10 analysis.

This module provides functionality for managing configuration, including
defaults, file paths from environment variables, and overrides from a
JSON or YAML file and the command line.
"""

import json
import logging
import os
from copy import deepcopy
from typing import Any, Dict, Optional

import yaml

# Set up logging
logger = logging.getLogger(__name__)

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def to_int(value: Any) -> Optional[int]:
    """
    Convert a value to an integer.

    Args:
        value: Value to convert

    Returns:
        Integer value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def to_bool(value: Any) -> Optional[bool]:
    """
    Convert a value to a boolean.

    Args:
        value: Value to convert

    Returns:
        Boolean value, or None if conversion failed
    """
    if value is None:
        return None

    if isinstance(value, bool):
        return value

    if isinstance(value, (int, float)):
        return bool(value)

    if isinstance(value, str):
        value = value.lower().strip()
        if value in ('true', 'yes', 'y', '1', 't'):
            return True
        if value in ('false', 'no', 'n', '0', 'f'):
            return False

    return None


def deep_update(d: Dict[str, Any], u: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge u into d, returning d."""
    for k, v in u.items():
        if isinstance(v, dict) and k in d and isinstance(d[k], dict):
            d[k] = deep_update(d[k], v)
        else:
            d[k] = v
    return d


def read_config_file(filepath: str) -> Dict[str, Any]:
    """
    Read configuration overrides from a JSON or YAML file.

    Args:
        filepath: Path to the file

    Returns:
        Dictionary of overrides (empty for an empty file)
    """
    if filepath.endswith('.json'):
        with open(filepath, 'r') as f:
            data = json.load(f)
    elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
        with open(filepath, 'r') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {filepath}: {e}") from e
    else:
        raise ValueError(f"Unsupported configuration file format: {filepath}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {filepath}")
    return data


class Config:
    """
    Configuration for an analysis run.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            overrides: Optional configuration overrides
        """
        self._config = {}
        self._initialized = False

        self.load_config(overrides)

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        """
        Load configuration from all sources.

        Args:
            overrides: Optional configuration overrides
        """
        config = self._get_defaults()
        config = self._apply_env_vars(config)

        if overrides:
            config = self._apply_overrides(config, overrides)

        self._validate(config)

        self._config = config
        self._initialized = True

        logger.debug("Configuration loaded")

    def _get_defaults(self) -> Dict[str, Any]:
        """
        Get default configuration values.

        Returns:
            Default configuration
        """
        return {
            # Input
            'data': {
                'path': None,
                'delimiter': ','
            },

            # Output
            'output': {
                'dir': 'output',
                'format': 'png',
                'dpi': 150
            },

            # Clustering
            'clustering': {
                'k-min': 1,
                'k-max': 10,
                'selected-k': 3,    # None means use the automatic elbow suggestion
                'seed': 42,
                'n-init': 25,
                'max-iters': 100,
                'tol': 1e-8
            },

            # PCA
            'pca': {
                'n-comps': 2,
                'scale': False
            },

            # Correlation
            'correlation': {
                'method': 'pearson',
                'cluster-method': 'complete'
            },

            # Chart styles
            'plots': {
                'histograms': {
                    'palette': 'viridis',
                    'figsize': [16, 7],
                    'columns': 5,
                    'xlabel': 'Score',
                    'ylabel': 'Responses',
                    'title': 'K10 item score distributions'
                },
                'correlation': {
                    'palette': 'RdBu_r',
                    'figsize': [9, 7.5],
                    'xlabel': '',
                    'ylabel': '',
                    'title': 'Inter-item correlation (Pearson)'
                },
                'elbow': {
                    'palette': 'tab10',
                    'figsize': [7, 4.5],
                    'xlabel': 'Number of clusters (k)',
                    'ylabel': 'Total within-cluster sum of squares',
                    'title': 'Elbow chart'
                },
                'scatter': {
                    'palette': 'Set2',
                    'figsize': [8, 6.5],
                    'xlabel': 'Principal component 1',
                    'ylabel': 'Principal component 2',
                    'title': 'Respondents on the first two principal components'
                },
                'centroids': {
                    'palette': 'YlOrRd',
                    'figsize': [9, 8],
                    'xlabel': 'Average score',
                    'ylabel': '',
                    'title': 'Average item score by cluster'
                }
            },

            # Logging
            'logging': {
                'level': 'info'
            }
        }

    def _apply_env_vars(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variables to configuration.

        Only file paths are read from the environment.

        Args:
            config: Current configuration

        Returns:
            Updated configuration
        """
        config = deepcopy(config)

        if 'K10_DATA_PATH' in os.environ:
            config['data']['path'] = os.environ['K10_DATA_PATH']

        if 'K10_OUTPUT_DIR' in os.environ:
            config['output']['dir'] = os.environ['K10_OUTPUT_DIR']

        return config

    def _apply_overrides(self, config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply configuration overrides.

        Args:
            config: Current configuration
            overrides: Configuration overrides

        Returns:
            Updated configuration
        """
        return deep_update(deepcopy(config), deepcopy(overrides))

    def _validate(self, config: Dict[str, Any]) -> None:
        """
        Check values that would otherwise fail deep inside the pipeline.

        Raises:
            ValueError: On an invalid value
        """
        clustering = config['clustering']
        for key in ('k-min', 'k-max', 'seed', 'n-init', 'max-iters'):
            if to_int(clustering[key]) is None:
                raise ValueError(f"clustering.{key} must be an integer, got {clustering[key]!r}")
            clustering[key] = to_int(clustering[key])

        if clustering['k-min'] < 1 or clustering['k-max'] < clustering['k-min']:
            raise ValueError(
                f"Invalid k range {clustering['k-min']}..{clustering['k-max']}"
            )

        selected = clustering['selected-k']
        if selected is not None:
            if to_int(selected) is None:
                raise ValueError(f"clustering.selected-k must be an integer or null, got {selected!r}")
            selected = to_int(selected)
            if not clustering['k-min'] <= selected <= clustering['k-max']:
                raise ValueError(
                    f"clustering.selected-k={selected} is outside the fitted range "
                    f"{clustering['k-min']}..{clustering['k-max']}"
                )
            clustering['selected-k'] = selected

        scale = to_bool(config['pca']['scale'])
        if scale is None:
            raise ValueError(f"pca.scale must be a boolean, got {config['pca']['scale']!r}")
        config['pca']['scale'] = scale

        level = str(config['logging']['level']).upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"logging.level must be one of {', '.join(LOG_LEVELS)}, "
                f"got {config['logging']['level']!r}"
            )
        config['logging']['level'] = level.lower()

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            path: Configuration path (dot-separated)
            default: Default value if not found

        Returns:
            Configuration value, or default if not found
        """
        if not self._initialized:
            self.load_config()

        value = self._config
        for component in path.split('.'):
            if isinstance(value, dict) and component in value:
                value = value[component]
            else:
                return default

        return value

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            path: Configuration path (dot-separated)
            value: Configuration value
        """
        if not self._initialized:
            self.load_config()

        components = path.split('.')
        config = self._config
        for component in components[:-1]:
            if component not in config:
                config[component] = {}
            config = config[component]

        config[components[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to a dictionary.

        Returns:
            Configuration dictionary
        """
        if not self._initialized:
            self.load_config()

        return deepcopy(self._config)

    def save_to_file(self, filepath: str) -> None:
        """
        Save configuration to a file.

        Args:
            filepath: Path to save configuration
        """
        if not self._initialized:
            self.load_config()

        if filepath.endswith('.json'):
            with open(filepath, 'w') as f:
                json.dump(self._config, f, indent=2)
        elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
            with open(filepath, 'w') as f:
                yaml.dump(self._config, f, default_flow_style=False)
        else:
            raise ValueError(f"Unsupported file format: {filepath}")

    def load_from_file(self, filepath: str) -> None:
        """
        Load configuration from a file.

        Args:
            filepath: Path to load configuration from
        """
        self.load_config(read_config_file(filepath))


class ConfigManager:
    """
    Singleton manager for configuration.
    """

    _instance = None

    @classmethod
    def get_config(cls, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Get the configuration instance.

        Args:
            overrides: Optional configuration overrides

        Returns:
            Config instance
        """
        if cls._instance is None:
            cls._instance = Config(overrides)
        elif overrides:
            cls._instance.load_config(overrides)

        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the current instance."""
        cls._instance = None
