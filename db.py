import logging

import schema_parser
from relation import Attribute, Relation

logger = logging.getLogger(__name__)

class Db:
	def __init__(self, schema_file):
		'''
		A catalog of the relations declared in a schema file. Relations are
		created empty and populated with read().
		'''
		self.schema_file = schema_file
		self.relations = {}
		self.create_relations()

	def create_relations(self):
		'Creates (but does not populate) the relations of the schema file'
		for node in schema_parser.parse_file(self.schema_file):
			relation = Relation(node.name)
			relation.attributes = [Attribute(attribute.name, attribute.type,
				node.name) for attribute in node.attributes]
			self.relations[node.name] = relation
		logger.info('Created %d relations from %s', len(self.relations),
			self.schema_file)

	def get_relation(self, name):
		'Returns the relation with the (case sensitive) name or None'
		return self.relations.get(name)

	def read(self, name, data_file):
		if name not in self.relations:
			raise KeyError('Relation %r does not exist' % name)
		relation = self.relations[name]
		relation.read(data_file)
		return relation

	def __str__(self):
		return '\n'.join(relation.schema_to_string()
			for relation in self.relations.values())
