from collections import namedtuple

from ply import lex, yacc

from errors import SchemaError
from relation import AttributeType

# A schema file declares one relation per line:
#   offices(officeCode TEXT, city TEXT, phone TEXT)
#   payments(customerNumber NUMERIC, checkNumber TEXT, amount NUMERIC)

tokens = (
	'IDENTIFIER',
)

def SchemaLexer():
	literals = ['(', ')', ',']

	def t_COMMENT(t):
		r'(--|\#)[^\n]*'
		pass

	def t_IDENTIFIER(t):
		r'[A-Za-z_][A-Za-z0-9_]*'
		return t

	def t_newline(t):
		r'\n+'
		t.lexer.lineno += len(t.value)

	t_ignore = ' \t\r'

	def t_error(t):
		raise SchemaError('Unrecognized character %r on line %d' %
			(t.value[0], t.lexer.lineno))

	return lex.lex()

RelationNode = namedtuple('RelationNode', ['name', 'attributes'])
AttributeNode = namedtuple('AttributeNode', ['name', 'type'])

start = 'schema'

def p_schema_base(p):
	'''schema : empty'''
	p[0] = []

def p_schema(p):
	'''schema : schema relation_definition'''
	p[1].append(p[2])
	p[0] = p[1]

def p_relation_definition(p):
	'''relation_definition : IDENTIFIER '(' attribute_list ')' '''
	p[0] = RelationNode(name=p[1], attributes=p[3])

def p_attribute_list_base(p):
	'''attribute_list : attribute_definition'''
	p[0] = [p[1]]

def p_attribute_list(p):
	'''attribute_list : attribute_list ',' attribute_definition'''
	p[1].append(p[3])
	p[0] = p[1]

def p_attribute_definition(p):
	'''attribute_definition : IDENTIFIER IDENTIFIER'''
	try:
		attribute_type = AttributeType.from_name(p[2])
	except SchemaError:
		raise SchemaError('Unrecognized data type for attribute %s: %s' %
			(p[1], p[2])) from None
	p[0] = AttributeNode(name=p[1], type=attribute_type)

def p_empty(p):
	'empty :'
	pass

def p_error(p):
	if p is None:
		raise SchemaError('Syntax error: unexpected end of schema on line %d' %
			lexer.lineno)
	raise SchemaError('Syntax error %r on line %d' % (p.value, p.lineno))

lexer = SchemaLexer()
parser = yacc.yacc(debug=False, write_tables=False,
	tabmodule='schema_parsetab')

def parse(text):
	'Returns a RelationNode for every relation declared in text'
	lexer.lineno = 1
	return parser.parse(text, lexer=lexer)

def parse_file(filename):
	with open(filename) as schema_file:
		return parse(schema_file.read())
