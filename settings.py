import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
	'display': {
		'column_width': 16,
		'column_separator': '|',
	},
	'logging': {
		'level': 'WARNING',
	},
}

def merge(base, overrides):
	'Recursively merges overrides into base and returns base'
	for key, value in overrides.items():
		if isinstance(value, dict) and isinstance(base.get(key), dict):
			merge(base[key], value)
		else:
			base[key] = value
	return base

def load_config(config_file=None):
	'''
	Returns the default configuration updated with the settings of a YAML
	file. A missing file leaves the defaults in place.
	'''
	config = copy.deepcopy(DEFAULT_CONFIG)
	if config_file is None:
		return config
	if not os.path.exists(config_file):
		logger.warning('Config file %s not found. Using default configuration.',
			config_file)
		return config
	with open(config_file) as f:
		overrides = yaml.safe_load(f)
	if not overrides:
		return config
	if not isinstance(overrides, dict):
		raise ValueError('Config file %s must contain a mapping' % config_file)
	return merge(config, overrides)
