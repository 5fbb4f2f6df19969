#!/usr/bin/env python3

import argparse
import logging
import os
import sys

import settings
from db import Db
from engine import QueryEngine
from errors import DbError

logger = logging.getLogger(__name__)

def load_data(db, data_dir):
	'Reads <data_dir>/<relation name>.txt into every relation that has one'
	for name in db.relations:
		data_file = os.path.join(data_dir, name + '.txt')
		if os.path.exists(data_file):
			db.read(name, data_file)
		else:
			logger.info('No data file for relation %s', name)

def run_query(engine, title, query, config, out):
	'Runs a query and prints its result, size and elapsed time'
	display = config['display']
	try:
		result = query()
	except DbError as e:
		print('%s failed: %s\n' % (title, e), file=out)
		return False
	finally:
		elapsed = engine.elapsed_time()
		engine.reset_elapsed_time()
	print(title, file=out)
	print(result.render(display['column_width'], display['column_separator']),
		file=out)
	print('Rows Returned: %d' % len(result), file=out)
	print('Elapsed Time: %s ms\n' % elapsed, file=out)
	return True

def main(argv=None, out=sys.stdout):
	parser = argparse.ArgumentParser(
		description='Load relations and compare join algorithms on them.')
	parser.add_argument('schema', help='schema file')
	parser.add_argument('data_dir', help='directory of <relation>.txt files')
	parser.add_argument('relations', nargs='*', metavar='relation',
		help='two relations to join')
	parser.add_argument('--config', help='YAML configuration file')
	parser.add_argument('--show-schema', action='store_true',
		help='print every relation schema')
	args = parser.parse_args(argv)
	if len(args.relations) not in (0, 2):
		parser.error('expected two relations to join')

	config = settings.load_config(args.config)
	logging.basicConfig(level=config['logging']['level'])

	try:
		db = Db(args.schema)
		load_data(db, args.data_dir)
	except (DbError, OSError) as e:
		print('error: %s' % e, file=sys.stderr)
		return 1
	if args.show_schema:
		print(db, file=out)
	if not args.relations:
		return 0

	first, second = [db.get_relation(name) for name in args.relations]
	for name, relation in zip(args.relations, (first, second)):
		if relation is None:
			parser.error('unknown relation %r' % name)

	engine = QueryEngine()
	queries = [
		('Natural join', lambda: engine.natural_join(first, second)),
		('Hash join', lambda: engine.hash_join(first, second)),
		('Sort-merge join', lambda: engine.sort_join(first, second)),
	]
	succeeded = [run_query(engine, title, query, config, out)
		for title, query in queries]
	return 0 if all(succeeded) else 1

if __name__ == '__main__':
	sys.exit(main())
