"""Pseudo-class predicates, resolved by name through a registry."""

import logging

import tinycss2
from tinycss2.nth import parse_nth
from webencodings import ascii_lower

from .parser import MalformedSelectorError, UnknownPseudoClassError

logger = logging.getLogger(__name__)

FORM_CONTROLS = ('button', 'input', 'select', 'textarea', 'option')
LINKS = ('a', 'area', 'link')


class PseudoClassPredicate:
    """A compiled ``:name`` or ``:name(argument)`` condition."""
    def __init__(self, name, argument, test):
        self.name = name
        self.argument = argument
        self.test = test

    def is_eligible(self, element):
        return bool(self.test(element))

    __call__ = is_eligible

    def __str__(self):
        if self.argument is None:
            return ':' + self.name
        return f':{self.name}({self.argument})'

    def __repr__(self):
        return f'<{type(self).__name__} {self}>'


class PseudoClassRegistry:
    """Map pseudo-class names to predicate factories.

    A factory is called with the argument text (or :obj:`None` when the
    pseudo-class has no parentheses) and returns a test callable taking an
    element. It raises :class:`MalformedSelectorError` for arguments it does
    not accept.

    :param builtins:
        Whether to install the built-in structural and form pseudo-classes.

    """
    def __init__(self, builtins=True):
        self._factories = {}
        if builtins:
            install_builtins(self)

    def register(self, name, factory=None):
        """Register ``factory`` for ``name``, replacing any previous one.

        Without ``factory``, return a decorator::

            @registry.register('warning')
            def warning(argument):
                return lambda el: el.get_attribute('role') is not None

        """
        if factory is None:
            return lambda factory: self.register(name, factory)
        name = ascii_lower(name)
        self._factories[name] = factory
        logger.debug(f'Registered pseudo-class :{name}')
        return factory

    def resolve(self, name, argument=None):
        """Return a :class:`PseudoClassPredicate` for ``:name(argument)``.

        :raises:
            :class:`UnknownPseudoClassError` if ``name`` is not registered,
            :class:`MalformedSelectorError` if the argument is rejected.

        """
        lower_name = ascii_lower(name)
        try:
            factory = self._factories[lower_name]
        except KeyError:
            raise UnknownPseudoClassError(
                f'Unknown pseudo-class :{name}') from None
        try:
            test = factory(argument)
        except MalformedSelectorError as exception:
            raise MalformedSelectorError(
                f'Invalid arguments for :{lower_name}: {exception}'
            ) from exception
        return PseudoClassPredicate(lower_name, argument, test)

    def __contains__(self, name):
        return ascii_lower(name) in self._factories

    def names(self):
        return sorted(self._factories)


def simple(test):
    """Factory for a pseudo-class that takes no argument."""
    def factory(argument):
        if argument is not None:
            raise MalformedSelectorError('no argument expected')
        return test
    return factory


def nth(count_func):
    """Factory for ``an+b`` pseudo-classes.

    ``count_func`` returns the number of relevant siblings before or after
    the element.

    """
    def factory(argument):
        if argument is None:
            raise MalformedSelectorError('an+b argument expected')
        result = parse_nth(argument)
        if result is None:
            raise MalformedSelectorError(f'invalid an+b: {argument!r}')
        a, b = result
        # x is the number of siblings before/after the element
        # Matches if a positive or zero integer n exists so that:
        # x = a*n + b-1
        # x = a*n + B
        B = b - 1
        if a == 0:
            # x = B
            return lambda el: count_func(el) == B
        # n = (x - B) / a
        def evaluator(el):
            n, r = divmod(count_func(el) - B, a)
            return r == 0 and n >= 0
        return evaluator
    return factory


def _siblings(el):
    """Return ``(siblings, index)`` for ``el``, the root being its own sibling."""
    parent = el.parent
    if parent is not None:
        siblings = parent.children
        for i, sibling in enumerate(siblings):
            if sibling is el:
                return siblings, i
    return [el], 0


def _same_type(el, other):
    return ascii_lower(el.name) == ascii_lower(other.name)


def _count_before(el):
    return _siblings(el)[1]


def _count_after(el):
    siblings, index = _siblings(el)
    return len(siblings) - index - 1


def _count_of_type_before(el):
    siblings, index = _siblings(el)
    return sum(1 for s in siblings[:index] if _same_type(s, el))


def _count_of_type_after(el):
    siblings, index = _siblings(el)
    return sum(1 for s in siblings[index + 1:] if _same_type(s, el))


def _has(el, name):
    return el.get_attribute(name) is not None


def _value(el, name):
    attribute = el.get_attribute(name)
    if attribute is None:
        return None
    return attribute.value or ''


def _tag_in(el, names):
    return ascii_lower(el.name) in names


def _in_disabled_fieldset(el):
    parent = el.parent
    while parent is not None:
        if _tag_in(parent, ('fieldset',)) and _has(parent, 'disabled'):
            return True
        parent = parent.parent
    return False


def _link(el):
    return _tag_in(el, LINKS) and _has(el, 'href')


def _checked(el):
    return (
        (_tag_in(el, ('input', 'menuitem')) and _has(el, 'checked') and
            ascii_lower(_value(el, 'type') or '') in ('checkbox', 'radio')) or
        (_tag_in(el, ('option',)) and _has(el, 'selected')))


def _disabled(el):
    return (
        (_tag_in(el, FORM_CONTROLS) and
            (_has(el, 'disabled') or _in_disabled_fieldset(el))) or
        (_tag_in(el, ('optgroup', 'menuitem', 'fieldset')) and
            _has(el, 'disabled')))


def _enabled(el):
    return (
        (_tag_in(el, FORM_CONTROLS) and
            not _has(el, 'disabled') and not _in_disabled_fieldset(el)) or
        (_tag_in(el, ('optgroup', 'menuitem', 'fieldset')) and
            not _has(el, 'disabled')) or
        _link(el))


def _lang(argument):
    if argument is None:
        raise MalformedSelectorError('language code expected')
    langs = []
    tokens = [
        token for token in tinycss2.parse_component_value_list(argument)
        if token.type not in ('whitespace', 'comment')]
    while tokens:
        token = tokens.pop(0)
        if token.type == 'ident':
            langs.append(token.lower_value)
        elif token.type == 'string':
            langs.append(ascii_lower(token.value))
        else:
            raise MalformedSelectorError('language code expected')
        if tokens:
            token = tokens.pop(0)
            if token.type != 'literal' or token.value != ',':
                raise MalformedSelectorError('comma expected')
    if not langs:
        raise MalformedSelectorError('language code expected')

    def element_lang(el):
        while el is not None:
            value = _value(el, 'lang')
            if value is not None:
                return ascii_lower(value)
            el = el.parent
        return None

    def test(el):
        lang = element_lang(el)
        return lang is not None and any(
            lang == code or lang.startswith(code + '-') for code in langs)
    return test


def _negation(registry):
    def factory(argument):
        # Imported here, the compiler depends on this module.
        from .compiler import Selector
        if not argument:
            raise MalformedSelectorError('selector expected')
        selector = Selector.compile(argument, registry=registry)
        return lambda el: not selector.is_eligible(el)
    return factory


def install_builtins(registry):
    registry.register('root', simple(lambda el: el.parent is None))
    registry.register('first-child', simple(lambda el: _count_before(el) == 0))
    registry.register('last-child', simple(lambda el: _count_after(el) == 0))
    registry.register('only-child', simple(
        lambda el: len(_siblings(el)[0]) == 1))
    registry.register('first-of-type', simple(
        lambda el: _count_of_type_before(el) == 0))
    registry.register('last-of-type', simple(
        lambda el: _count_of_type_after(el) == 0))
    registry.register('only-of-type', simple(
        lambda el: _count_of_type_before(el) == _count_of_type_after(el) == 0))
    registry.register('empty', simple(lambda el: not (el.children or el.text)))
    registry.register('nth-child', nth(_count_before))
    registry.register('nth-last-child', nth(_count_after))
    registry.register('nth-of-type', nth(_count_of_type_before))
    registry.register('nth-last-of-type', nth(_count_of_type_after))
    registry.register('not', _negation(registry))
    registry.register('link', simple(_link))
    registry.register('checked', simple(_checked))
    registry.register('disabled', simple(_disabled))
    registry.register('enabled', simple(_enabled))
    registry.register('lang', _lang)


#: Registry used when no other one is given to the compiler.
default_registry = PseudoClassRegistry()


def register(name, factory=None):
    """Register a pseudo-class in the default registry."""
    return default_registry.register(name, factory)


def resolve(name, argument=None):
    """Resolve a pseudo-class from the default registry."""
    return default_registry.resolve(name, argument)
