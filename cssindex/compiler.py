"""Compile single-element selectors into predicate objects operating on elements"""

import re
import string
from typing import Optional

from tinycss2.serializer import serialize_identifier, serialize_string_value
from webencodings import ascii_lower

from . import parser
from .parser import InvalidArgumentError, SelectorError
from .pseudoclasses import default_registry

# http://dev.w3.org/csswg/selectors/#whitespace
split_whitespace = re.compile('[^ \t\r\n\f]+').findall

# Inverse of ascii_lower, leaving non-ASCII letters alone
ASCII_UPPER = str.maketrans(string.ascii_lowercase, string.ascii_uppercase)


def compile_selector(expression, registry=None):
    """Compile a selector string.

    :param expression:
        A string such as ``div#main.note[data-state=active]:first-child``.
    :param registry:
        The :class:`~cssindex.pseudoclasses.PseudoClassRegistry` resolving
        pseudo-class names. Defaults to the module registry.
    :returns:
        A :class:`Selector`.

    """
    return Selector.compile(expression, registry)


def FALSE(_value):
    """Always returns 0"""
    return 0


def TRUE(_value):
    """Always returns 1"""
    return 1


def _compile_operator(operator: Optional[str], value: Optional[str]):
    """Return a test on the attribute value, as a callable."""
    if operator is None:
        return TRUE
    if operator == '=':
        return lambda attribute_value: attribute_value == value
    if operator == '~=':
        return (FALSE if len(value.split()) != 1 or value.strip() != value
                else lambda attribute_value: value in split_whitespace(
                    attribute_value))
    if operator == '|=':
        return lambda attribute_value: (
            attribute_value == value or
            attribute_value.startswith(value + '-'))
    if operator == '^=':
        if value:
            return lambda attribute_value: attribute_value.startswith(value)
        return FALSE
    if operator == '$=':
        if value:
            return lambda attribute_value: attribute_value.endswith(value)
        return FALSE
    if operator == '*=':
        if value:
            return lambda attribute_value: value in attribute_value
        return FALSE
    raise SelectorError('Unknown attribute operator', operator)


def _compile_attribute(selector: parser.AttributeSelector):
    return AttributePredicate(selector.name, selector.operator, selector.value)


def _compile_pseudo_class(selector: parser.PseudoClassSelector, registry):
    return registry.resolve(selector.name, selector.argument)


class AttributePredicate:
    """``[name]`` or ``[name<operator>value]`` condition on one element."""
    def __init__(self, name: str, operator: Optional[str] = None,
                 value: Optional[str] = None):
        if not name:
            raise InvalidArgumentError('Attribute name is required')
        if (operator is None) != (value is None):
            raise InvalidArgumentError(
                'Operator and value must be given together')
        self.name = name
        self.operator = operator
        self.value = value
        self._test = _compile_operator(operator, value)

    def is_eligible(self, element):
        attribute = element.get_attribute(self.name)
        if attribute is None:
            return False
        return bool(self._test(attribute.value or ''))

    __call__ = is_eligible

    def __str__(self):
        name = serialize_identifier(self.name)
        if self.operator is None:
            return f'[{name}]'
        return f'[{name}{self.operator}"{serialize_string_value(self.value)}"]'

    def __repr__(self):
        return f'<{type(self).__name__} {self}>'


class Selector:
    """A compiled single-element selector.

    Built once with :meth:`compile` (or directly from its parts); the
    predicate sequences are tuples and never change afterwards.

    """
    def __init__(self, tag_name='*', attribute_predicates=(),
                 pseudo_class_predicates=()):
        if not tag_name:
            raise InvalidArgumentError('Tag name is required, use "*"')
        #: Type constraint as written, ``'*'`` for any element
        self.tag_name = tag_name
        self.lower_tag_name = ascii_lower(tag_name)
        #: Tuple of :class:`AttributePredicate`, in source order
        self.attribute_predicates = tuple(attribute_predicates)
        #: Tuple of :class:`~cssindex.pseudoclasses.PseudoClassPredicate`
        self.pseudo_class_predicates = tuple(pseudo_class_predicates)

    @classmethod
    def compile(cls, expression, registry=None):
        """Parse ``expression`` and resolve its pseudo-classes.

        :raises:
            :class:`~cssindex.parser.InvalidArgumentError` for an empty
            expression,
            :class:`~cssindex.parser.MalformedSelectorError` when it does not
            match the grammar,
            :class:`~cssindex.parser.UnknownPseudoClassError` for pseudo-class
            names missing from ``registry``.

        """
        if not expression:
            raise InvalidArgumentError('Selector expression is required')
        if registry is None:
            registry = default_registry
        parsed = parser.parse(expression)
        return cls(
            parsed.tag_name,
            [_compile_attribute(selector)
             for selector in parsed.attribute_selectors],
            [_compile_pseudo_class(selector, registry)
             for selector in parsed.pseudo_classes])

    @property
    def id(self):
        """Operand of the first ``[id=...]`` predicate, or :obj:`None`."""
        for predicate in self.attribute_predicates:
            if ascii_lower(predicate.name) == 'id' and predicate.operator == '=':
                return predicate.value
        return None

    @property
    def class_names(self):
        """Operands of the ``[class~=...]`` predicates, in source order."""
        return tuple(
            predicate.value for predicate in self.attribute_predicates
            if ascii_lower(predicate.name) == 'class' and
            predicate.operator == '~=')

    def is_eligible(self, element):
        """Tell whether ``element`` matches, :obj:`None` never does."""
        if element is None:
            return False
        if (self.lower_tag_name != '*' and
                ascii_lower(element.name) != self.lower_tag_name):
            return False
        for predicate in self.attribute_predicates:
            if not predicate.is_eligible(element):
                return False
        for predicate in self.pseudo_class_predicates:
            if not predicate.is_eligible(element):
                return False
        return True

    __call__ = is_eligible

    def filter(self, elements):
        """Return a lazy iterable of the matching ``elements``, in order.

        Iterating again evaluates the selector again.

        """
        return FilteredElements(self, elements)

    def __str__(self):
        tag_name = self.tag_name
        if tag_name != '*':
            tag_name = serialize_identifier(tag_name)
        return '{}{}{}'.format(
            tag_name.translate(ASCII_UPPER),
            ''.join(map(str, self.attribute_predicates)),
            ''.join(map(str, self.pseudo_class_predicates)))

    def __repr__(self):
        return f'<{type(self).__name__} {self}>'


class FilteredElements:
    def __init__(self, selector, elements):
        self.selector = selector
        self.elements = elements

    def __iter__(self):
        is_eligible = self.selector.is_eligible
        return (element for element in self.elements if is_eligible(element))
