"""
    cssindex
    --------

    Single-element CSS selectors and incremental class indexes
    for mutable element trees.

    :copyright: (c) 2012 by Simon Sapin.
    :license: BSD, see LICENSE for more details.

"""

from .parser import (
    SelectorError, MalformedSelectorError, UnknownPseudoClassError,
    InvalidArgumentError)
from .compiler import compile_selector, Selector, AttributePredicate
from .pseudoclasses import (
    PseudoClassPredicate, PseudoClassRegistry, default_registry, register,
    resolve)
from .index import ElementIndex, ClassIndex
from .tree import Attribute, Element, Document


VERSION = '0.1a0'

__all__ = [
    'SelectorError', 'MalformedSelectorError', 'UnknownPseudoClassError',
    'InvalidArgumentError', 'compile_selector', 'Selector',
    'AttributePredicate', 'PseudoClassPredicate', 'PseudoClassRegistry',
    'default_registry', 'register', 'resolve', 'ElementIndex', 'ClassIndex',
    'Attribute', 'Element', 'Document', 'VERSION']
