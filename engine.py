import contextlib
import functools
import itertools
import logging
import time
from enum import Enum

import predicate
from errors import (ArityMismatch, EmptyAggregationSpec, TypeMismatch,
	UniquenessViolation)
from relation import Attribute, AttributeType, Relation, compare_tuples, sort_key

logger = logging.getLogger(__name__)

class Stopwatch:
	'Accumulates the wall clock time spent in engine operators'
	def __init__(self):
		self.elapsed = 0.0
		self.depth = 0

	@contextlib.contextmanager
	def measure(self):
		'''
		Adds the time spent in the block to the elapsed time. Nested blocks are
		only counted by the outermost one.
		'''
		self.depth += 1
		start = time.perf_counter()
		try:
			yield
		finally:
			self.depth -= 1
			if self.depth == 0:
				self.elapsed += time.perf_counter() - start

	def elapsed_ms(self):
		return self.elapsed * 1000.0

	def reset(self):
		self.elapsed = 0.0

def timed(method):
	'Records the duration of an operator call on the engine stopwatch'
	@functools.wraps(method)
	def wrapper(self, *args, **kwargs):
		with self.stopwatch.measure():
			result = method(self, *args, **kwargs)
		if result is not None:
			logger.debug('%s returned %d tuples', method.__name__, len(result))
		return result
	return wrapper

class Agg(Enum):
	SUM = 'SUM'
	SUM_DISTINCT = 'SUM_DISTINCT'
	AVG = 'AVG'
	AVG_DISTINCT = 'AVG_DISTINCT'
	COUNT = 'COUNT'
	COUNT_DISTINCT = 'COUNT_DISTINCT'
	MAX = 'MAX'
	MIN = 'MIN'

	@property
	def numeric_only(self):
		return self in (Agg.SUM, Agg.SUM_DISTINCT, Agg.AVG, Agg.AVG_DISTINCT)

	@property
	def result_type(self):
		'Type of the aggregate value, or None for the type of its attribute'
		if self in (Agg.MAX, Agg.MIN):
			return None
		return AttributeType.NUMERIC

class Aggregate:
	'Represents the computation of a single aggregate over one group.'
	def __init__(self, position, distinct=False):
		self.position = position
		self.distinct = distinct
		self.count = 0
		self.seen = set()

	def update(self, row):
		'Adds the tuple to the computation of the aggregate.'
		self.count += 1
		value = row[self.position]
		if self.distinct:
			if value in self.seen:
				return
			self.seen.add(value)
		self.accumulate(value)

	def accumulate(self, value):
		raise NotImplementedError

	def final(self):
		'Returns the final value of the aggregate.'
		raise NotImplementedError

class Count(Aggregate):
	def accumulate(self, value):
		pass

	def final(self):
		if self.distinct:
			return float(len(self.seen))
		return float(self.count)

class Sum(Aggregate):
	def __init__(self, position, distinct=False):
		super().__init__(position, distinct)
		self.sum = 0.0

	def accumulate(self, value):
		self.sum += value

	def final(self):
		return self.sum

class Avg(Sum):
	def final(self):
		# The distinct sum is still divided by the size of the whole group
		if self.count == 0:
			return None
		return self.sum / self.count

class Max(Aggregate):
	'Maximum value of the attribute across all non-null values'
	def __init__(self, position, distinct=False):
		super().__init__(position, distinct)
		self.max = None

	def accumulate(self, value):
		if value is not None and (self.max is None or value > self.max):
			self.max = value

	def final(self):
		return self.max

class Min(Aggregate):
	'Minimum value of the attribute across all non-null values'
	def __init__(self, position, distinct=False):
		super().__init__(position, distinct)
		self.min = None

	def accumulate(self, value):
		if value is not None and (self.min is None or value < self.min):
			self.min = value

	def final(self):
		return self.min

aggregate_classes = {
	Agg.SUM: (Sum, False),
	Agg.SUM_DISTINCT: (Sum, True),
	Agg.AVG: (Avg, False),
	Agg.AVG_DISTINCT: (Avg, True),
	Agg.COUNT: (Count, False),
	Agg.COUNT_DISTINCT: (Count, True),
	Agg.MAX: (Max, False),
	Agg.MIN: (Min, False),
}

def to_agg(function):
	if isinstance(function, Agg):
		return function
	try:
		return Agg[function.upper()]
	except (KeyError, AttributeError):
		raise ValueError('Unknown aggregation function %r' % function) from None

def partition(rows, key):
	'''
	Sorts rows by key and yields (key value, rows) for every maximal run of rows
	sharing a key value.
	'''
	for value, run in itertools.groupby(
			sorted(rows, key=lambda row: sort_key(key(row))), key=key):
		yield value, list(run)

def next_value(iterator):
	'Returns the next value from the iterator or None.'
	try:
		return iterator.__next__()
	except StopIteration:
		return None

def common_attributes(first, second):
	'Returns the attributes of first which second also has, in order'
	others = set(second.attributes)
	common = []
	for attribute in first.attributes:
		if attribute in others and attribute not in common:
			common.append(attribute)
	return common

def join_schema(first, second):
	'''
	Returns the attributes of a join of first and second: all of first's
	attributes followed by those of second not already present, and the
	positions in second of the attributes that were appended.
	'''
	attributes = list(first.attributes)
	positions = []
	for position, attribute in enumerate(second.attributes):
		if attribute not in attributes:
			attributes.append(attribute)
			positions.append(position)
	return attributes, positions

def key_function(positions):
	return lambda row: tuple(row[i] for i in positions)

class QueryEngine:
	def __init__(self, stopwatch=None):
		'''
		Evaluates relational algebra operators. Each operator returns a new
		relation and adds its duration to the stopwatch, which the caller may
		share between engines.
		'''
		self.stopwatch = stopwatch if stopwatch is not None else Stopwatch()

	def elapsed_time(self):
		'Returns the time spent in operators since the last reset in ms'
		return self.stopwatch.elapsed_ms()

	def reset_elapsed_time(self):
		self.stopwatch.reset()

	@staticmethod
	def is_compatible(first, second):
		'''
		Relations are compatible for set operations when they have the same
		degree and the same attribute types position by position.
		'''
		if len(first.attributes) != len(second.attributes):
			return False
		return all(lhs.type == rhs.type
			for lhs, rhs in zip(first.attributes, second.attributes))

	def check_compatible(self, operation, first, second):
		if not self.is_compatible(first, second):
			raise TypeMismatch('%s: incompatible relations %s and %s' %
				(operation, first.schema_to_string(), second.schema_to_string()))

	@timed
	def union(self, first, second):
		if first is None or second is None:
			return None
		self.check_compatible('Union', first, second)
		result = first.clone()
		for row in second:
			result.add_values(row.values)
		return result

	@timed
	def minus(self, first, second):
		if first is None or second is None:
			return None
		self.check_compatible('Set difference', first, second)
		result = Relation(first.name, first.attributes)
		for row in first:
			if row not in second:
				result.add_values(row.values)
		return result

	@timed
	def intersect(self, first, second):
		return self.minus(first, self.minus(first, second))

	@timed
	def times(self, first, second):
		'Returns the cartesian product, or None if either relation is None'
		if first is None or second is None:
			return None
		result = Relation(attributes=first.attributes + second.attributes)
		for lhs in first:
			for rhs in second:
				row = lhs.concat(rhs)
				row.set_relation(result)
				result.add_tuple(row)
		return result

	@timed
	def select(self, relation, condition):
		'''
		Returns the tuples of the relation for which the condition is true. An
		empty condition selects the relation itself.
		'''
		if not condition or not condition.strip():
			return relation
		result = Relation(relation.name, relation.attributes)
		for row in relation:
			if predicate.evaluate(condition, row):
				result.add_values(row.values)
		return result

	@timed
	def project(self, relation, names):
		'''
		Keeps the values of the named attributes, in the given order. Names may
		be short or pedantic and may repeat.
		'''
		positions = [relation.lookup(name) for name in names]
		result = Relation(
			attributes=[relation.attributes[i] for i in positions])
		for row in relation:
			result.add_values([row[i] for i in positions])
		return result

	@timed
	def rename_relation(self, relation, name):
		result = relation.clone()
		result.set_name(name)
		result.attributes = [Attribute(attribute.name, attribute.type, name)
			for attribute in relation.attributes]
		return result

	@timed
	def rename_attributes(self, relation, names):
		'Renames every attribute of the relation to the given short names'
		if len(names) != len(relation.attributes):
			raise ArityMismatch('Attribute size mismatch. Required: %d attributes.'
				% len(relation.attributes))
		result = relation.clone()
		result.attributes = [Attribute(name, attribute.type, relation.name)
			for name, attribute in zip(names, relation.attributes)]
		return result

	@timed
	def natural_join(self, first, second):
		'''
		Selects the tuples of the cartesian product that agree on every common
		attribute and projects them onto the join schema. Common attributes are
		matched by position in the product, so operands without a name (or
		with the same name) join like any other.
		'''
		common = common_attributes(first, second)
		if not common:
			return self.times(first, second)
		offset = len(first.attributes)
		pairs = [(first.lookup(a.name), offset + second.lookup(a.name))
			for a in common]
		attributes, payload = join_schema(first, second)
		positions = list(range(offset)) + [offset + i for i in payload]

		result = Relation(attributes=attributes)
		for row in self.times(first, second):
			# A null never equals anything, as in a selection condition
			if all(row[i] is not None and row[i] == row[j] for i, j in pairs):
				result.add_values([row[i] for i in positions])
		return result

	@timed
	def hash_join(self, first, second):
		'''
		Joins the relations on their common attributes by hashing the tuples of
		first on the join key and probing with the tuples of second.

		The join key must be unique in first.
		'''
		common = common_attributes(first, second)
		if not common:
			return self.times(first, second)
		build_key = key_function([first.lookup(a.name) for a in common])
		probe_key = key_function([second.lookup(a.name) for a in common])
		attributes, payload = join_schema(first, second)

		table = {}
		for row in first:
			key = build_key(row)
			if None in key:
				continue
			if key in table:
				logger.warning('Hash join key %r is not unique in %s', key,
					first.name)
				raise UniquenessViolation('Hash join cannot be performed: the '
					'common attributes of %s must be unique, found %r twice' %
					(first.name, key))
			table[key] = row.values

		result = Relation(attributes=attributes)
		for row in second:
			values = table.get(probe_key(row))
			if values is not None:
				result.add_values(values + tuple(row[i] for i in payload))
		return result

	@timed
	def sort_join(self, first, second):
		'''
		Joins the relations on their common attributes by sorting both on the
		join key and merging runs of equal keys.
		'''
		common = common_attributes(first, second)
		if not common:
			return self.times(first, second)
		lhs_key = key_function([first.lookup(a.name) for a in common])
		rhs_key = key_function([second.lookup(a.name) for a in common])
		attributes, payload = join_schema(first, second)

		lhs_runs = partition(
			(row for row in first if None not in lhs_key(row)), lhs_key)
		rhs_runs = partition(
			(row for row in second if None not in rhs_key(row)), rhs_key)
		result = Relation(attributes=attributes)
		lhs = next_value(lhs_runs)
		rhs = next_value(rhs_runs)
		while lhs and rhs:
			order = compare_tuples(lhs[0], rhs[0])
			if order < 0:
				lhs = next_value(lhs_runs)
			elif order > 0:
				rhs = next_value(rhs_runs)
			else:
				for lhs_row in lhs[1]:
					for rhs_row in rhs[1]:
						result.add_values(lhs_row.values +
							tuple(rhs_row[i] for i in payload))
				lhs = next_value(lhs_runs)
				rhs = next_value(rhs_runs)
		return result

	@timed
	def aggregate(self, relation, functions, attrs, groups=None):
		'''
		Returns one tuple per group holding the values of the grouping
		attributes followed by the value of each aggregate function applied to
		the attribute at the same position in attrs. Without groups the whole
		relation is a single group.
		'''
		if not functions or not attrs:
			raise EmptyAggregationSpec('No aggregation function specified.')
		if len(functions) != len(attrs):
			raise ArityMismatch('%d aggregation functions for %d attributes' %
				(len(functions), len(attrs)))
		groups = groups or []

		group_positions = [relation.lookup(name) for name in groups]
		attributes = [Attribute(name, relation.attributes[position].type)
			for name, position in zip(groups, group_positions)]
		factories = []
		for function, name in zip(map(to_agg, functions), attrs):
			position = relation.lookup(name)
			source = relation.attributes[position]
			if function.numeric_only and source.type == AttributeType.TEXT:
				raise TypeMismatch('Type mismatch: Cannot perform %s() over TEXT '
					'attribute: %s' % (function.value, name))
			attributes.append(Attribute('%s(%s)' % (function.value, name),
				function.result_type or source.type))
			aggregate_class, distinct = aggregate_classes[function]
			factories.append(
				functools.partial(aggregate_class, position, distinct))
		result = Relation(attributes=attributes)

		if group_positions:
			runs = partition(relation, key_function(group_positions))
		else:
			runs = [((), list(relation))]
		for key, rows in runs:
			aggregates = [factory() for factory in factories]
			for row in rows:
				for aggregate in aggregates:
					aggregate.update(row)
			result.add_values(key +
				tuple(aggregate.final() for aggregate in aggregates))
		return result
