"""
    cssindex.parser
    ---------------

    A parser for single-element selectors, based on the tinycss2 tokenizer.

    :copyright: (c) 2012 by Simon Sapin.
    :license: BSD, see LICENSE for more details.

"""

import tinycss2
from webencodings import ascii_lower

__all__ = ['parse', 'ParsedSelector', 'AttributeSelector', 'PseudoClassSelector',
           'SelectorError', 'MalformedSelectorError', 'UnknownPseudoClassError',
           'InvalidArgumentError']

ATTRIBUTE_OPERATORS = ('=', '~=', '|=', '^=', '$=', '*=')


class SelectorError(ValueError):
    """A specialized ValueError for selectors."""


class MalformedSelectorError(SelectorError):
    """The selector string does not match the selector grammar."""


class UnknownPseudoClassError(SelectorError):
    """No pseudo-class of that name is registered."""


class InvalidArgumentError(ValueError):
    """A required argument is missing or empty."""


def parse(input):  # pylint: disable=redefined-builtin
    """Parse a single-element selector.

    :param input:
        A string, or an iterable of tinycss2 component values.
    :returns:
        A :class:`ParsedSelector`.
    :raises:
        :class:`MalformedSelectorError` if the input does not match
        ``tag? id? class* attr* pseudo*``.

    """
    if isinstance(input, str):
        tokens = tinycss2.parse_component_value_list(input, skip_comments=True)
    else:
        tokens = [
            token for token in input if token.type != 'comment']
    tokens = TokenStream(tokens)

    tokens.skip_whitespace()
    result = parse_compound_selector(tokens)
    tokens.skip_whitespace()
    next = tokens.next()
    if next is not None:
        raise MalformedSelectorError(
            f'Got pseudo-element, combinator or group: {next.type} '
            f'{next.serialize()!r}')
    if isinstance(input, str):
        check_closed(input)
    return result


CLOSING = {'[] block': ']', '() block': ')', '{} block': '}', 'function': ')'}


def check_closed(css):
    """Refuse ``[`` and ``(`` left open at the end of ``css``.

    tinycss2 closes such blocks silently at end of input. Only the blocks
    ending the input can be open: follow the chain of last component values
    and require the source to end with their closing characters.

    """
    closing = ''
    # Comments are kept so that one between two closers ends the chain
    tokens = tinycss2.parse_component_value_list(css, skip_comments=False)
    while tokens and tokens[-1].type in CLOSING:
        token = tokens[-1]
        closing = CLOSING[token.type] + closing
        tokens = token.arguments if token.type == 'function' else token.content
    if not closing:
        return
    before = css[:-len(closing)]
    backslashes = len(before) - len(before.rstrip('\\'))
    if not css.endswith(closing) or backslashes % 2:
        raise MalformedSelectorError(
            f'Expected {closing[0]!r} before end of selector')


def parse_compound_selector(tokens):
    tag_name = parse_type_selector(tokens)
    attribute_selectors = []
    pseudo_classes = []

    peek = tokens.peek()
    if peek is not None and peek.type == 'hash':
        tokens.next()
        if not peek.is_identifier:
            raise MalformedSelectorError(
                f'Invalid ID selector: #{peek.value}')
        attribute_selectors.append(AttributeSelector('id', '=', peek.value))

    while tokens.peek_literal('.'):
        tokens.next()
        next = tokens.next()
        if next is None or next.type != 'ident':
            raise MalformedSelectorError(
                f'Expected a class name, got {describe(next)}')
        attribute_selectors.append(
            AttributeSelector('class', '~=', next.value))

    while True:
        peek = tokens.peek()
        if peek is None or peek.type != '[] block':
            break
        tokens.next()
        attribute_selectors.append(
            parse_attribute_selector(TokenStream(peek.content)))

    while tokens.peek_literal(':'):
        tokens.next()
        next = tokens.next()
        if next is not None and next.type == 'ident':
            pseudo_classes.append(PseudoClassSelector(next.lower_value))
        elif next is not None and next.type == 'function':
            check_errors(next.arguments)
            argument = serialize_tokens(next.arguments).strip()
            pseudo_classes.append(
                PseudoClassSelector(next.lower_name, argument))
        else:
            raise MalformedSelectorError(
                f'Expected a pseudo-class name, got {describe(next)}')

    if tag_name is None and not attribute_selectors and not pseudo_classes:
        raise MalformedSelectorError(
            f'Expected selector, got {describe(tokens.peek())}')
    return ParsedSelector(tag_name or '*', attribute_selectors, pseudo_classes)


def parse_type_selector(tokens):
    peek = tokens.peek()
    if peek is None:
        return None
    if peek.type == 'ident':
        tokens.next()
        return peek.value
    if peek.type == 'literal' and peek.value == '*':
        tokens.next()
        return '*'
    return None


def parse_attribute_selector(tokens):
    tokens.skip_whitespace()
    next = tokens.next()
    if next is None or next.type != 'ident':
        raise MalformedSelectorError(
            f'Expected attribute name, got {describe(next)}')
    name = next.value

    tokens.skip_whitespace()
    next = tokens.next()
    if next is None:
        return AttributeSelector(name, None, None)
    if next.type != 'literal' or next.value not in ATTRIBUTE_OPERATORS:
        raise MalformedSelectorError(
            f'Expected attribute operator or ], got {describe(next)}')
    operator = next.value

    tokens.skip_whitespace()
    next = tokens.next()
    if next is None:
        raise MalformedSelectorError(
            f'Expected attribute value after {operator!r}, got ]')
    if next.type in ('ident', 'string'):
        value = next.value
    elif next.type in ('number', 'dimension'):
        value = next.serialize()
    else:
        raise MalformedSelectorError(
            f'Expected attribute value, got {describe(next)}')

    tokens.skip_whitespace()
    next = tokens.next()
    if next is not None:
        raise MalformedSelectorError(f'Expected ], got {describe(next)}')
    return AttributeSelector(name, operator, value)


def check_errors(tokens):
    for token in tokens:
        if token.type == 'error':
            raise MalformedSelectorError(token.message)


def serialize_tokens(tokens):
    # tinycss2.serialize() would insert /**/ between tokens such as 2n and +1
    return ''.join(token.serialize() for token in tokens)


def describe(token):
    if token is None:
        return 'end of selector'
    if token.type == 'literal':
        return repr(token.value)
    return token.type


class TokenStream:
    """Iterate over component values, refusing tokenizer errors."""
    def __init__(self, tokens):
        self.tokens = iter(tokens)
        self.peeked = []

    def _next(self):
        token = next(self.tokens, None)
        if token is not None and token.type == 'error':
            raise MalformedSelectorError(token.message)
        return token

    def next(self):
        if self.peeked:
            return self.peeked.pop()
        return self._next()

    def peek(self):
        if not self.peeked:
            self.peeked.append(self._next())
        return self.peeked[-1]

    def peek_literal(self, value):
        peek = self.peek()
        return peek is not None and peek.type == 'literal' and peek.value == value

    def skip_whitespace(self):
        has_whitespace = False
        while True:
            peek = self.peek()
            if peek is None or peek.type != 'whitespace':
                return has_whitespace
            self.next()
            has_whitespace = True


class ParsedSelector:
    """Result of :func:`parse`, not yet bound to pseudo-class predicates."""
    def __init__(self, tag_name, attribute_selectors, pseudo_classes):
        #: Type selector as written, or ``'*'``
        self.tag_name = tag_name
        #: List of :class:`AttributeSelector`, ID and classes first
        self.attribute_selectors = attribute_selectors
        #: List of :class:`PseudoClassSelector`
        self.pseudo_classes = pseudo_classes

    def __repr__(self):
        return '{}{}{}'.format(
            self.tag_name,
            ''.join(map(repr, self.attribute_selectors)),
            ''.join(map(repr, self.pseudo_classes)))


class AttributeSelector:
    def __init__(self, name, operator, value):
        self.name = name
        self.lower_name = ascii_lower(name)
        #: A string like ``=`` or ``~=``, or None for ``[attr]`` selectors
        self.operator = operator
        #: A string, or None for ``[attr]`` selectors
        self.value = value

    def __repr__(self):
        if self.operator is None:
            return f'[{self.name}]'
        return f'[{self.name}{self.operator}{self.value!r}]'


class PseudoClassSelector:
    def __init__(self, name, argument=None):
        self.name = name
        #: Serialized argument text, or None when there are no parentheses
        self.argument = argument

    def __repr__(self):
        if self.argument is None:
            return ':' + self.name
        return f':{self.name}({self.argument})'
