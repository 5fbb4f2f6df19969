#!/usr/bin/env python3

import os
import tempfile
import unittest

from settings import *

class TestLoadConfig(unittest.TestCase):
	def setUp(self):
		self.directory = tempfile.TemporaryDirectory()

	def tearDown(self):
		self.directory.cleanup()

	def write(self, text):
		filename = os.path.join(self.directory.name, 'config.yaml')
		with open(filename, 'w') as f:
			f.write(text)
		return filename

	def test_should_return_defaults(self):
		self.assertEqual(load_config(), DEFAULT_CONFIG)
		self.assertIsNot(load_config(), DEFAULT_CONFIG)

	def test_should_override_defaults(self):
		config = load_config(self.write(
			'display:\n  column_width: 10\nlogging:\n  level: DEBUG\n'))
		self.assertEqual(config['display']['column_width'], 10)
		self.assertEqual(config['display']['column_separator'], '|')
		self.assertEqual(config['logging']['level'], 'DEBUG')
		self.assertEqual(DEFAULT_CONFIG['display']['column_width'], 16)

	def test_missing_or_empty_file_should_use_defaults(self):
		missing = os.path.join(self.directory.name, 'none.yaml')
		with self.assertLogs('settings', level='WARNING'):
			self.assertEqual(load_config(missing), DEFAULT_CONFIG)
		self.assertEqual(load_config(self.write('')), DEFAULT_CONFIG)

	def test_should_raise_error_for_non_mapping(self):
		with self.assertRaisesRegex(ValueError, 'mapping'):
			load_config(self.write('- 1\n- 2\n'))

class TestMerge(unittest.TestCase):
	def test(self):
		base = {'a': {'b': 1, 'c': 2}, 'd': 3}
		self.assertEqual(merge(base, {'a': {'c': 4}, 'e': 5}),
			{'a': {'b': 1, 'c': 4}, 'd': 3, 'e': 5})

if __name__ == '__main__':
	unittest.main()
