import functools
import logging
import weakref
from enum import Enum

from errors import (ArityMismatch, AttributeAmbiguous, AttributeNotFound,
	SchemaError, TypeMismatch)

logger = logging.getLogger(__name__)

# Fixed-width rendering of tuples and relations
COLUMN_SEPARATOR = '|'
COLUMN_WIDTH = 16

class AttributeType(Enum):
	TEXT = 'TEXT'
	NUMERIC = 'NUMERIC'

	@classmethod
	def from_name(cls, name):
		'Returns the type with the given case-insensitive name'
		try:
			return cls[name.upper()]
		except KeyError:
			raise SchemaError('Unrecognized data type %r' % name) from None

def str_to_text(s, source=None):
	'''
	Converts a data file field to a TEXT value. Text is single quoted and the
	unquoted word null (in any case) is the null value.
	'''
	if s.lower() == 'null':
		return None
	if len(s) >= 2 and s[0] == "'" and s[-1] == "'":
		return s[1:-1]
	raise TypeMismatch('Type mismatch for TEXT attribute: %r in %s' %
		(s, source))

def str_to_numeric(s, source=None):
	try:
		return float(s)
	except ValueError:
		raise TypeMismatch('Type mismatch for NUMERIC attribute: %r in %s' %
			(s, source)) from None

class Attribute:
	def __init__(self, name, attribute_type, relation_name=None):
		'''
		A column of a relation schema. relation_name names the relation owning
		the attribute and qualifies its pedantic name.
		'''
		self.name = name
		self.type = attribute_type
		self.relation_name = relation_name

	@property
	def pedantic_name(self):
		'The fully qualified "relation.attribute" name'
		if self.relation_name is None:
			return self.name
		return '%s.%s' % (self.relation_name, self.name)

	def check_value_type(self, value):
		'''
		Returns value as stored for this attribute. Raises TypeMismatch if the
		value has the wrong type.
		'''
		if self.type == AttributeType.TEXT:
			if value is None or isinstance(value, str):
				return value
		elif isinstance(value, (int, float)) and not isinstance(value, bool):
			return float(value)
		raise TypeMismatch('Value %r of type %s is wrong type for %s attribute %s'
			% (value, type(value).__name__, self.type.value, self.name))

	def parse_value(self, s, source=None):
		'Converts a field of a data file to a value of this attribute'
		if self.type == AttributeType.TEXT:
			return str_to_text(s, source)
		return str_to_numeric(s, source)

	# Attributes of different relations are the same attribute when their
	# names and types match. Natural join relies on this.
	def __eq__(self, other):
		if not isinstance(other, Attribute):
			return NotImplemented
		return self.name == other.name and self.type == other.type

	def __hash__(self):
		return hash((self.name, self.type))

	def __repr__(self):
		return 'Attribute(%r, %s)' % (self.pedantic_name, self.type.value)

def compare_values(lhs, rhs):
	'Compares two attribute values. Null is greater than any other value.'
	if lhs is None:
		return 0 if rhs is None else 1
	if rhs is None:
		return -1
	if lhs < rhs:
		return -1
	if lhs > rhs:
		return 1
	return 0

def compare_tuples(lhs_tuple, rhs_tuple):
	'Compares two sequences of values lexicographically'
	for lhs, rhs in zip(lhs_tuple, rhs_tuple):
		order = compare_values(lhs, rhs)
		if order:
			return order
	return 0

sort_key = functools.cmp_to_key(compare_tuples)

def format_value(value):
	if value is None:
		return 'null'
	return str(value)

def render_row(values, width=COLUMN_WIDTH, separator=COLUMN_SEPARATOR):
	'Renders values as one line of fixed width cells'
	cells = [format_value(value)[:width].ljust(width) for value in values]
	return separator + separator.join(cells) + separator

class Tuple:
	def __init__(self, values, relation=None):
		'''
		An ordered sequence of values. The tuple keeps a weak reference to the
		relation it belongs to, which is only used to resolve attribute names.
		'''
		self.values = tuple(values)
		self.set_relation(relation)

	def set_relation(self, relation):
		'Binds the tuple to the relation it is added to'
		self._relation = weakref.ref(relation) if relation is not None else None

	@property
	def relation(self):
		if self._relation is None:
			return None
		return self._relation()

	def concat(self, other):
		'Returns a new unbound tuple holding the values of both tuples'
		return Tuple(self.values + other.values)

	def value_of(self, name):
		'Returns the value of the attribute with the (pedantic) name'
		relation = self.relation
		if relation is None:
			raise AttributeNotFound(
				'Cannot resolve %r: tuple is not bound to a relation' % name)
		return self.values[relation.lookup(name)]

	def __len__(self):
		return len(self.values)

	def __iter__(self):
		return iter(self.values)

	def __getitem__(self, index):
		return self.values[index]

	def __eq__(self, other):
		if not isinstance(other, Tuple):
			return NotImplemented
		return self.values == other.values

	def __hash__(self):
		return hash(self.values)

	def __repr__(self):
		return 'Tuple(%r)' % (self.values,)

	def __str__(self):
		return render_row(self.values)

class Relation:
	def __init__(self, name=None, attributes=()):
		'''
		A named set of tuples sharing one schema. Tuples are kept in insertion
		order and a tuple equal to one already present is not added again.
		'''
		self.name = name
		self._tuples = {}
		self.attributes = attributes

	def set_name(self, name):
		self.name = name

	@property
	def attributes(self):
		return self._attributes

	@attributes.setter
	def attributes(self, attributes):
		'Assigns the schema and rebuilds the name index'
		self._attributes = list(attributes)
		# name -> (position, number of attributes with that name)
		self._index = {}
		for position, attribute in enumerate(self._attributes):
			names = [attribute.name]
			if attribute.relation_name is not None:
				names.append(attribute.pedantic_name)
			for name in names:
				first, count = self._index.get(name, (position, 0))
				self._index[name] = (first, count + 1)

	@property
	def tuples(self):
		return self._tuples.keys()

	def lookup(self, name):
		'Returns the position of the attribute with the short or pedantic name'
		entry = self._index.get(name)
		if entry is None:
			raise AttributeNotFound('Attribute %s does not exist in relation %s'
				% (name, self.name))
		position, count = entry
		if count > 1:
			raise AttributeAmbiguous('Attribute %s is ambiguous in relation %s'
				% (name, self.name))
		return position

	def has_attribute(self, name):
		return name in self._index

	def get_attribute(self, name):
		return self._attributes[self.lookup(name)]

	def add_tuple(self, row):
		if row is None:
			return
		if len(row) != len(self._attributes):
			raise ArityMismatch(
				'Tuple size mismatch: %d but relation contains %d attributes' %
				(len(row), len(self._attributes)))
		self._tuples.setdefault(row, None)

	def add_values(self, values):
		'Adds a tuple holding values, bound to this relation'
		self.add_tuple(Tuple(values, self))

	def insert(self, values):
		'Type checks values and adds them as a tuple'
		if len(values) != len(self._attributes):
			raise ArityMismatch('Wrong number of values: %d but relation contains'
				' %d attributes' % (len(values), len(self._attributes)))
		self.add_values([attribute.check_value_type(value)
			for attribute, value in zip(self._attributes, values)])

	def clone(self):
		'Returns a copy with the same name, schema and tuples'
		copy = Relation(self.name, self._attributes)
		for row in self:
			copy.add_values(row.values)
		return copy

	def read(self, filename):
		'''
		Populates the relation from a data file holding one tuple per line with
		values separated by "|". Nothing is added unless every line is valid.
		'''
		rows = []
		with open(filename) as data_file:
			for line_number, line in enumerate(data_file, 1):
				line = line.rstrip('\r\n')
				if not line.strip():
					continue
				fields = [field.strip() for field in line.split(COLUMN_SEPARATOR)]
				if len(fields) != len(self._attributes):
					raise ArityMismatch('Line %d of %s has %d values but relation'
						' %s has %d attributes' % (line_number, filename,
						len(fields), self.name, len(self._attributes)))
				source = '%s line %d' % (filename, line_number)
				rows.append([attribute.parse_value(field, source)
					for attribute, field in zip(self._attributes, fields)])
		for values in rows:
			self.add_values(values)
		logger.info('Read %d tuples into %s from %s', len(rows), self.name,
			filename)

	def has_duplicate_names(self):
		names = [attribute.name.lower() for attribute in self._attributes]
		return len(set(names)) != len(names)

	def schema_to_string(self):
		definitions = ',\n'.join('\t%s %s' % (attribute.name, attribute.type.value)
			for attribute in self._attributes)
		return '%s(\n%s\n)' % (self.name, definitions)

	def render(self, width=COLUMN_WIDTH, separator=COLUMN_SEPARATOR):
		'''
		Renders the relation as a table of fixed width columns. Pedantic names
		label the columns when two attributes share a short name.
		'''
		degree = len(self._attributes)
		banner = '-' * (degree * width + degree + 1)
		if self.has_duplicate_names():
			labels = [attribute.pedantic_name for attribute in self._attributes]
		else:
			labels = [attribute.name for attribute in self._attributes]
		lines = [] if self.name is None else [self.name]
		lines += [banner, render_row(labels, width, separator), banner]
		if self._tuples:
			lines += [render_row(row, width, separator) for row in self]
		else:
			lines.append('(Empty)')
		lines.append(banner)
		return '\n'.join(lines)

	def __str__(self):
		return self.render()

	def __repr__(self):
		return 'Relation(%r, %r)' % (self.name, self._attributes)

	def __iter__(self):
		'Returns an iterator over all tuples in the relation'
		return iter(list(self._tuples))

	def __len__(self):
		return len(self._tuples)

	def __contains__(self, row):
		return row in self._tuples
