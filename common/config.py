#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import copy
import json
import logging
import os

import yaml

LOG_FORMAT = '[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s'

DEFAULT_CONFIG = {
    'database_url': 'sqlite+aiosqlite:///upgrader.db',
    'extensions_dir': 'extensions',
    'migrations_subdir': 'migrations',
    'nats_url': 'nats://localhost:4222',
    'logging': {
        'level': 'info',
        'file': None,
    },
    'upgrade': {
        'fail_fast': True,
        'strict_versions': False,
        'lock_timeout': 30.0,
    },
}


class RobustFileHandler(logging.FileHandler):
    """FileHandler that gracefully handles flush errors on Windows"""

    def flush(self):
        """Flush the stream, catching OSError on Windows file handles"""
        try:
            super().flush()
        except OSError as e:
            # Windows can fail to flush with "Invalid argument" when the
            # handle is in an inconsistent state
            if e.errno != 22:  # EINVAL
                raise


def configure_logger(logger,
                     log_file=None,
                     log_format=None,
                     log_level=logging.INFO):
    """Configure a logger with a file or stream handler

    Args:
        logger: Logger instance or logger name string
        log_file: File path string or file-like object (None for stderr)
        log_format: Format string for log messages
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG)

    Returns:
        Configured logger instance
    """
    if isinstance(log_file, str):
        handler = RobustFileHandler(
            log_file,
            mode='a',
            encoding='utf-8',
            errors='replace'
        )
    else:
        handler = logging.StreamHandler(log_file)  # Default to stderr if None

    formatter = logging.Formatter(log_format or LOG_FORMAT)

    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(log_level)

    return logger


def parse_log_level(level_str):
    """Parse a log level name ('info', 'DEBUG', ...) to a logging constant

    Raises:
        ValueError: If the name is not a logging level
    """
    level = getattr(logging, str(level_str).upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level_str}")
    return level


def _merge(defaults, overrides):
    """Recursively merge overrides into a copy of defaults"""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_file):
    """Load configuration from a JSON or YAML file and apply defaults

    The UPGRADER_DATABASE_URL environment variable overrides database_url.

    Args:
        config_file: Path to a .json, .yaml or .yml file

    Returns:
        Configuration dictionary with defaults for missing keys
    """
    if config_file.endswith(('.yaml', '.yml')):
        with open(config_file, 'r', encoding='utf-8') as fp:
            conf = yaml.safe_load(fp) or {}
    else:
        with open(config_file, 'r', encoding='utf-8') as fp:
            conf = json.load(fp)

    if not isinstance(conf, dict):
        raise ValueError(f"Config file {config_file} must contain a mapping")

    conf = _merge(DEFAULT_CONFIG, conf)

    if 'UPGRADER_DATABASE_URL' in os.environ:
        conf['database_url'] = os.environ['UPGRADER_DATABASE_URL']

    # Validate early so a bad level fails before anything runs
    parse_log_level(conf['logging'].get('level', 'info'))

    return conf


def get_config(config_file):
    """Load configuration and configure logging from it

    Returns:
        Configuration dictionary (see load_config)
    """
    conf = load_config(config_file)

    logging_config = conf['logging']
    log_level = parse_log_level(logging_config.get('level', 'info'))

    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    if logging_config.get('file'):
        configure_logger(logging.getLogger(), logging_config['file'],
                         LOG_FORMAT, log_level)

    return conf
