#!/usr/bin/env python3

import os
import tempfile
import unittest

from errors import *
from relation import AttributeType
from schema_parser import *

class TestParse(unittest.TestCase):
	def test(self):
		relations = parse('''offices(code TEXT, city text, floors Numeric)
			employees(code TEXT,
				name TEXT)
			''')

		self.assertEqual(len(relations), 2)
		self.assertEqual(relations[0].name, 'offices')
		self.assertEqual(relations[0].attributes, [
			AttributeNode('code', AttributeType.TEXT),
			AttributeNode('city', AttributeType.TEXT),
			AttributeNode('floors', AttributeType.NUMERIC),
		])
		self.assertEqual(relations[1].name, 'employees')
		self.assertEqual([a.name for a in relations[1].attributes],
			['code', 'name'])

	def test_should_keep_case_of_names(self):
		relations = parse('Customers(customerNumber NUMERIC)')
		self.assertEqual(relations[0].name, 'Customers')
		self.assertEqual(relations[0].attributes[0].name, 'customerNumber')

	def test_should_ignore_comments_and_blank_lines(self):
		relations = parse('-- classic models\n\n# offices\noffices(code TEXT)\n')
		self.assertEqual([r.name for r in relations], ['offices'])

	def test_should_parse_empty_schema(self):
		self.assertEqual(parse(''), [])

	def test_should_raise_error_for_unknown_type(self):
		with self.assertRaisesRegex(SchemaError, 'attribute code: INTEGER'):
			parse('offices(code INTEGER)')

	def test_should_raise_error_for_invalid_schema(self):
		test_cases = [
			('offices code TEXT)', 'missing open paren'),
			('offices(code TEXT', 'missing close paren'),
			('offices()', 'empty schema'),
			('offices(TEXT)', 'missing attribute name'),
			('offices(code TEXT city TEXT)', 'missing comma'),
			('offices(code TEXT,)', 'trailing comma'),
			('offices(code-id TEXT)', 'invalid attribute name'),
		]
		for schema, description in test_cases:
			with self.assertRaises(SchemaError, msg=description):
				parse(schema)

	def test_should_report_line_of_syntax_error(self):
		with self.assertRaisesRegex(SchemaError, 'line 2'):
			parse('offices(code TEXT)\nemployees(code TEXT')

class TestParseFile(unittest.TestCase):
	def test_should_parse_file(self):
		with tempfile.TemporaryDirectory() as directory:
			filename = os.path.join(directory, 'schema.txt')
			with open(filename, 'w') as f:
				f.write('offices(code TEXT, city TEXT)\n')
			relations = parse_file(filename)
		self.assertEqual(relations[0].name, 'offices')

	def test_should_raise_error_for_missing_file(self):
		with self.assertRaises(FileNotFoundError):
			parse_file(os.path.join(tempfile.gettempdir(), 'no_such_schema.txt'))

if __name__ == '__main__':
	unittest.main()
