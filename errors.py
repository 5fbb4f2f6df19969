class DbError(Exception):
	'Base class of every error raised by the relational engine'
	pass

class SchemaError(DbError, ValueError):
	'A schema declares an unknown attribute type or is malformed'
	pass

class AttributeNotFound(DbError, KeyError):
	def __str__(self):
		# KeyError quotes its message
		return Exception.__str__(self)

class AttributeAmbiguous(DbError, ValueError):
	pass

class ArityMismatch(DbError, TypeError):
	'A tuple or name list does not have the degree of the relation'
	pass

class TypeMismatch(DbError, TypeError):
	pass

class InvalidExpression(DbError, ValueError):
	pass

class UniquenessViolation(DbError, ValueError):
	'The build side of a hash join has two tuples with the same key'
	pass

class EmptyAggregationSpec(DbError, ValueError):
	pass
