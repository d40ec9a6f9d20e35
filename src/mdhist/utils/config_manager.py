"""
Configuration management module for mdhist.

This module provides functionality for loading, validating, and managing
configuration settings for trajectory analysis.
"""
import copy
import yaml
from pathlib import Path
import logging
from typing import Dict, Any, Optional, Union
import json

from .helpers import update_dict_recursively

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'trajectory': {
        'try_to_map': False,
        'derive_velocities': False,
    },
    'analysis': {
        'tbegin': 0,
        'tend': None,
        'tsmear': None,       # Kelvin; None -> 5% of the mean temperature
        'omega_max': None,    # THz
        'ninter': None,
        'amplitude': 1.0,
        'workers': None,
        'thermo_points': 1000,
    },
}

class ConfigManager:
    """Class for managing mdhist configuration settings."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager with defaults.

        Args:
            config_file: Path to the configuration file (optional)
        """
        self.config: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
        if config_file is not None:
            self.load_config(config_file)

    def load_config(self, config_file: Union[str, Path]) -> None:
        """
        Load configuration from a YAML file, on top of the defaults.

        Args:
            config_file: Path to the configuration file
        """
        config_path = Path(config_file)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")

        logger.info(f"Loading configuration from {config_path}")
        with open(config_path, 'r') as f:
            user_cfg = yaml.safe_load(f)
        if user_cfg:
            if not isinstance(user_cfg, dict):
                raise ValueError(f"Configuration file {config_path} must contain a mapping.")
            update_dict_recursively(self.config, user_cfg)

        self._validate_config()

    def _validate_config(self) -> None:
        """Validate the current configuration."""
        for key in ('trajectory', 'analysis'):
            if not isinstance(self.config.get(key), dict):
                raise ValueError(f"Missing required configuration key: {key}")

        analysis = self.config['analysis']
        tsmear = analysis.get('tsmear')
        if tsmear is not None and tsmear <= 0:
            raise ValueError("analysis.tsmear needs to be positive.")
        ninter = analysis.get('ninter')
        if ninter is not None and ninter < 2:
            raise ValueError("analysis.ninter must be >= 2.")
        amplitude = analysis.get('amplitude', 1.0)
        if not 0.0 <= amplitude <= 1.0:
            raise ValueError("analysis.amplitude must lie in [0, 1].")
        workers = analysis.get('workers')
        if workers is not None and workers < 1:
            raise ValueError("analysis.workers must be >= 1.")
        if analysis.get('tbegin', 0) < 0:
            raise ValueError("analysis.tbegin must be >= 0.")

    def get_trajectory_config(self) -> Dict[str, Any]:
        """
        Get trajectory configuration settings.

        Returns:
            Dictionary of trajectory settings
        """
        return self.config.get('trajectory', {})

    def get_analysis_config(self) -> Dict[str, Any]:
        """
        Get analysis configuration settings.

        Returns:
            Dictionary of analysis settings
        """
        return self.config.get('analysis', {})

    def update_config(self, updates: Dict[str, Any]) -> None:
        """
        Update configuration settings.

        Args:
            updates: Dictionary of configuration updates
        """
        update_dict_recursively(self.config, updates)
        self._validate_config()

    def save_config(self, output_file: Union[str, Path]) -> None:
        output_path = Path(output_file)
        logger.info(f"Saving configuration to {output_path}")

        with open(output_path, 'w') as f:
            yaml.dump(self.config, f, default_flow_style=False)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.config)

    def to_json(self) -> str:
        return json.dumps(self.config, indent=4)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ConfigManager':
        """
        Create a ConfigManager instance from a dictionary merged over the defaults.

        Args:
            config_dict: Dictionary of configuration settings

        Returns:
            ConfigManager instance
        """
        instance = cls()
        update_dict_recursively(instance.config, copy.deepcopy(config_dict))
        instance._validate_config()
        return instance
