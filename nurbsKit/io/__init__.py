"""
Configuration loading.
"""

from .config import KernelConfig, config_from_dict, load_config
