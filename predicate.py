import functools
import operator

from ply import lex, yacc

from errors import AttributeAmbiguous, AttributeNotFound, InvalidExpression

# Selection conditions, e.g.
#   offices.code = employees.code && salary >= 1000 || title != 'Sales Rep'

keywords = {
	'true':'TRUE',
	'false':'FALSE',
	'null':'NULL',
}

tokens = (
	'NUMBER',
	'STRING',
	'IDENTIFIER',
	'AND',
	'OR',
	'EQ',
	'NEQ',
	'LEQ',
	'GEQ',
) + tuple(keywords.values())

precedence = (
	('left', 'OR'),
	('left', 'AND'),
	('nonassoc', '<', '>', 'EQ', 'NEQ', 'LEQ', 'GEQ'),
	('left', '+', '-'),
	('left', '*', '/'),
	('right', '!', 'UMINUS'),
)

def PredicateLexer():
	literals = ['(', ')', '<', '>', '!', '+', '-', '*', '/']

	t_AND = r'&&'
	t_OR = r'\|\|'
	t_EQ = r'==?'
	t_NEQ = r'(!=)|(<>)'
	t_LEQ = r'<='
	t_GEQ = r'>='

	def t_NUMBER(t):
		r'[0-9]+(?:\.[0-9]*)?(?:[eE][+-]?[0-9]+)?'
		t.value = float(t.value)
		return t

	def t_STRING(t):
		r"""'(?:[^'\n]|'')*'|"(?:[^"\n]|"")*\""""
		quote = t.value[0]
		t.value = t.value[1:-1].replace(quote * 2, quote)
		return t

	# Aggregate columns are named like COUNT(name) or SUM(payments.amount)
	def t_IDENTIFIER(t):
		r'[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)?(?:\([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)?\))?'
		t.type = keywords.get(t.value.lower(), 'IDENTIFIER')
		return t

	t_ignore = ' \t\r\n'

	def t_error(t):
		raise InvalidExpression('Unrecognized character %r' % t.value[0])

	return lex.lex()

class Expression:
	def evaluate(self, row):
		'Returns the value of the expression for the values of a tuple'
		raise NotImplementedError

class Constant(Expression):
	def __init__(self, value):
		self.value = value

	def evaluate(self, row):
		return self.value

class AttributeReference(Expression):
	def __init__(self, name):
		'''
		A name which is replaced by the value of the attribute it names in the
		relation of the evaluated tuple. A name that does not resolve is a bare
		word, which is not a valid operand.
		'''
		self.name = name

	def evaluate(self, row):
		try:
			return row.value_of(self.name)
		except AttributeNotFound:
			raise InvalidExpression(
				'Invalid expression: %r is not an attribute of the relation' %
				self.name) from None
		except AttributeAmbiguous as e:
			raise InvalidExpression(
				'Invalid expression: %r is ambiguous, use its pedantic name' %
				self.name) from e

def kind(value):
	if isinstance(value, bool):
		return bool
	if isinstance(value, (int, float)):
		return float
	return type(value)

class BinaryOperation(Expression):
	def __init__(self, op, lhs, rhs):
		self.op = op
		self.lhs = lhs
		self.rhs = rhs

	def evaluate(self, row):
		lhs = self.lhs.evaluate(row)
		if lhs is None:
			return None
		rhs = self.rhs.evaluate(row)
		if rhs is None:
			return None
		return self.apply(lhs, rhs)

	def apply(self, lhs, rhs):
		raise NotImplementedError

def check_boolean(op, value):
	if value is not None and not isinstance(value, bool):
		raise InvalidExpression('Operands of %s must be booleans, not %r' %
			(op, value))
	return value

class And(BinaryOperation):
	def __init__(self, lhs, rhs):
		super().__init__('&&', lhs, rhs)

	def evaluate(self, row):
		lhs = check_boolean(self.op, self.lhs.evaluate(row))
		if lhs == False:
			return False
		rhs = check_boolean(self.op, self.rhs.evaluate(row))
		if lhs == True:
			return rhs
		if rhs == False:
			return False
		return None

class Or(BinaryOperation):
	def __init__(self, lhs, rhs):
		super().__init__('||', lhs, rhs)

	def evaluate(self, row):
		lhs = check_boolean(self.op, self.lhs.evaluate(row))
		if lhs == True:
			return True
		rhs = check_boolean(self.op, self.rhs.evaluate(row))
		if lhs == False:
			return rhs
		if rhs == True:
			return True
		return None

class Comparison(BinaryOperation):
	operators = {
		'<': operator.lt,
		'<=': operator.le,
		'=': operator.eq,
		'==': operator.eq,
		'>=': operator.ge,
		'>': operator.gt,
		'<>': operator.ne,
		'!=': operator.ne,
	}

	def apply(self, lhs, rhs):
		compare = Comparison.operators[self.op]
		if kind(lhs) != kind(rhs):
			# Values of different types are never equal and have no order
			if compare is operator.eq:
				return False
			if compare is operator.ne:
				return True
			raise InvalidExpression('Cannot compare %r and %r with %s' %
				(lhs, rhs, self.op))
		return compare(lhs, rhs)

class Arithmetic(BinaryOperation):
	operators = {
		'*': operator.mul,
		'/': operator.truediv,
		'+': operator.add,
		'-': operator.sub,
	}

	def apply(self, lhs, rhs):
		if kind(lhs) != float or kind(rhs) != float:
			raise InvalidExpression('Operands to %r must be numeric' % self.op)
		try:
			return Arithmetic.operators[self.op](lhs, rhs)
		except ZeroDivisionError:
			raise InvalidExpression('Division by zero') from None

class UnaryMinus(Expression):
	def __init__(self, expression):
		self.expression = expression

	def evaluate(self, row):
		value = self.expression.evaluate(row)
		if value is None:
			return None
		if kind(value) != float:
			raise InvalidExpression('Operand to minus must be numeric')
		return - value

class LogicalNot(Expression):
	def __init__(self, expression):
		self.expression = expression

	def evaluate(self, row):
		value = check_boolean('!', self.expression.evaluate(row))
		if value is None:
			return None
		return not value

start = 'expression'

def p_expression_logical(p):
	'''expression : expression OR expression
				| expression AND expression'''
	if p[2] == '&&':
		p[0] = And(p[1], p[3])
	else:
		p[0] = Or(p[1], p[3])

def p_expression_comparison(p):
	'''expression : expression '<' expression
				| expression LEQ expression
				| expression EQ expression
				| expression NEQ expression
				| expression GEQ expression
				| expression '>' expression'''
	p[0] = Comparison(p[2], p[1], p[3])

def p_expression_arithmetic(p):
	'''expression : expression '+' expression
				| expression '-' expression
				| expression '*' expression
				| expression '/' expression'''
	p[0] = Arithmetic(p[2], p[1], p[3])

def p_expression_not(p):
	'''expression : '!' expression'''
	p[0] = LogicalNot(p[2])

def p_expression_minus(p):
	'''expression : '-' expression %prec UMINUS'''
	p[0] = UnaryMinus(p[2])

def p_expression_group(p):
	'''expression : '(' expression ')' '''
	p[0] = p[2]

def p_expression_constant(p):
	'''expression : NUMBER
				| STRING'''
	p[0] = Constant(p[1])

def p_expression_keyword(p):
	'''expression : TRUE
				| FALSE
				| NULL'''
	p[0] = Constant({'true': True, 'false': False, 'null': None}[p[1].lower()])

def p_expression_attribute(p):
	'''expression : IDENTIFIER'''
	p[0] = AttributeReference(p[1])

def p_error(p):
	if p is None:
		raise InvalidExpression('Syntax error: unexpected end of expression')
	raise InvalidExpression('Syntax error at %r' % p.value)

lexer = PredicateLexer()
parser = yacc.yacc(debug=False, write_tables=False,
	tabmodule='predicate_parsetab')

@functools.lru_cache(maxsize=256)
def parse(condition):
	'Returns the expression tree of a condition'
	return parser.parse(condition, lexer=lexer)

def evaluate(condition, row):
	'''
	Evaluates a boolean condition for a tuple. Attribute names in the condition
	are resolved against the relation the tuple belongs to. A condition which
	is unknown because it compares a null value is false.
	'''
	result = parse(condition).evaluate(row)
	if result is None:
		return False
	if not isinstance(result, bool):
		raise InvalidExpression('Condition %r does not evaluate to a boolean' %
			condition)
	return result
