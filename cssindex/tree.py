"""
    cssindex.tree
    -------------

    A mutable element tree that notifies observers of its changes.

    :copyright: (c) 2012 by Simon Sapin.
    :license: BSD, see LICENSE for more details.

"""

import contextlib
import threading

from webencodings import ascii_lower

from .compiler import Selector, split_whitespace
from .parser import InvalidArgumentError

CLASS_ATTRIBUTE = frozenset(['class'])


class Attribute:
    """A ``(name, value)`` pair; ``value`` may be :obj:`None`."""
    def __init__(self, name, value=None):
        if not name:
            raise InvalidArgumentError('Attribute name is required')
        self.name = name
        self.value = value

    def matches(self, name):
        return ascii_lower(self.name) == ascii_lower(name)

    def __repr__(self):
        return f'<{type(self).__name__} {self.name}={self.value!r}>'


class Element:
    """
    An element with ordered attributes and child elements.

    Elements are compared by identity. An element belongs to at most one
    :class:`Document`; changes made while it belongs to one are reported to
    the document observers.

    """
    def __init__(self, name, attributes=(), text=None):
        if not name:
            raise InvalidArgumentError('Element name is required')
        if hasattr(attributes, 'items'):
            attributes = attributes.items()
        #: The tag name, as a string.
        self.name = name
        #: List of :class:`Attribute`, in insertion order.
        self.attributes = [
            Attribute(name, value) for name, value in attributes]
        #: Text before the first child, or :obj:`None`.
        self.text = text
        #: The parent :class:`Element`, or :obj:`None` for the root element.
        self.parent = None
        #: List of child :class:`Element` objects, in tree order.
        self.children = []
        #: The owning :class:`Document`, or :obj:`None` when detached.
        self.document = None

    def __repr__(self):
        return f'<{type(self).__name__} {self.name} {self.id!r}>'

    def _lock(self):
        document = self.document
        if document is None:
            return contextlib.nullcontext()
        return document.lock

    def _notify(self, hook, *args):
        if self.document is not None:
            self.document.notify(hook, *args)

    def get_attribute(self, name):
        """Return the first :class:`Attribute` called ``name``, or :obj:`None`.

        Names are compared ASCII case-insensitively.

        """
        for attribute in self.attributes:
            if attribute.matches(name):
                return attribute
        return None

    def get(self, name, default=None):
        """Return the value of an attribute, or ``default`` if it is absent."""
        attribute = self.get_attribute(name)
        if attribute is None:
            return default
        return attribute.value

    @property
    def id(self):
        """The ID of this element, as a string."""
        return self.get('id')

    @property
    def classes(self):
        """The classes of this element, as a :class:`set` of strings."""
        return set(split_whitespace(self.get('class') or ''))

    def add_attribute(self, name, value=None):
        """Append a new attribute, even if one with that name exists."""
        attribute = Attribute(name, value)
        with self._lock():
            self.attributes.append(attribute)
            self._notify('attribute_added', self, attribute)
        return attribute

    def set_attribute(self, name, value=None):
        """Change the value of the first attribute called ``name``.

        The attribute is added when missing. A change is reported as the
        removal of the old value followed by the addition of the new one.

        """
        with self._lock():
            attribute = self.get_attribute(name)
            if attribute is None:
                return self.add_attribute(name, value)
            old = Attribute(attribute.name, attribute.value)
            attribute.value = value
            self._notify('attribute_removed', self, old)
            self._notify('attribute_added', self, attribute)
        return attribute

    def remove_attribute(self, name):
        """Remove the first attribute called ``name`` and return it.

        Return :obj:`None` if there is no such attribute.

        """
        with self._lock():
            attribute = self.get_attribute(name)
            if attribute is None:
                return None
            self.attributes.remove(attribute)
            self._notify('attribute_removed', self, attribute)
        return attribute

    def append(self, child):
        self.insert(len(self.children), child)
        return child

    def insert(self, index, child):
        """Insert ``child`` at ``index``, moving it from its former parent."""
        if child is None:
            raise InvalidArgumentError('Child element is required')
        # Checks, detach and attach happen as one step for other threads
        with self._lock():
            if child is self or any(
                    ancestor is child for ancestor in self.iter_ancestors()):
                raise InvalidArgumentError('An element can not contain itself')
            if child.parent is not None:
                child.parent.remove(child)
            elif child.document is not None:
                raise InvalidArgumentError(
                    'The root of a document can not move')
            self.children.insert(index, child)
            child.parent = self
            if self.document is not None:
                self.document.attach(child)
        return child

    def remove(self, child):
        """Detach ``child`` and its subtree from this element."""
        if child is None:
            raise InvalidArgumentError('Child element is required')
        with self._lock():
            if child.parent is not self:
                raise InvalidArgumentError(
                    f'{child!r} is not a child of {self!r}')
            if self.document is not None:
                self.document.detach(child)
            self.children = [c for c in self.children if c is not child]
            child.parent = None
        return child

    @property
    def index(self):
        """The position within the parent’s children, or :obj:`None`."""
        if self.parent is None:
            return None
        for i, sibling in enumerate(self.parent.children):
            if sibling is self:
                return i

    def iter_ancestors(self):
        """Return an iterator of this element’s ancestors,
        in reversed tree order (from :attr:`parent` to the root)

        """
        element = self
        while element.parent is not None:
            element = element.parent
            yield element

    def iter_subtree(self):
        """Return an iterator for the entire subtree rooted at this element,
        in tree order.

        Unlike in other methods, the element itself *is* included.

        """
        stack = [iter([self])]
        while stack:
            element = next(stack[-1], None)
            if element is None:
                stack.pop()
            else:
                yield element
                stack.append(iter(element.children))

    def query_all(self, selector):
        """
        Return elements of this subtree, in tree order, matching ``selector``.

        :param selector:
            Either a :class:`~cssindex.compiler.Selector`
            or a string to compile.
        :returns:
            An iterator of :class:`Element` objects.

        """
        return iter(_as_selector(selector).filter(self.iter_subtree()))

    def query(self, selector):
        """Return the first element matching ``selector``, or :obj:`None`."""
        return next(self.query_all(selector), None)


class Document:
    """A tree of :class:`Element` objects with mutation observers.

    Observers implement ``element_added``, ``element_removed``,
    ``attribute_added`` and ``attribute_removed``, like
    :class:`~cssindex.index.ElementIndex`. Hooks are called synchronously
    while :attr:`lock` is held.

    """
    @classmethod
    def from_etree(cls, root):
        """
        :param root:
            An ElementTree :class:`~xml.etree.ElementTree.Element`
            or :class:`~xml.etree.ElementTree.ElementTree`.
            Namespaces are dropped from tag names, comments and
            processing instructions are skipped.
        :returns:
            A new :class:`Document`

        """
        if hasattr(root, 'getroot'):
            root = root.getroot()
        return cls(_from_etree_element(root))

    def __init__(self, root):
        if root is None:
            raise InvalidArgumentError('Root element is required')
        if root.parent is not None or root.document is not None:
            raise InvalidArgumentError(f'{root!r} already belongs to a tree')
        #: Serializes mutations and hook deliveries.
        self.lock = threading.RLock()
        self.root = root
        self._observers = []
        for element in root.iter_subtree():
            element.document = self

    def add_observer(self, observer):
        with self.lock:
            self._observers.append(observer)

    def remove_observer(self, observer):
        with self.lock:
            self._observers = [o for o in self._observers if o is not observer]

    def notify(self, hook, *args):
        with self.lock:
            for observer in list(self._observers):
                getattr(observer, hook)(*args)

    def attach(self, element):
        with self.lock:
            for descendant in element.iter_subtree():
                descendant.document = self
                self.notify('element_added', descendant)

    def detach(self, element):
        with self.lock:
            for descendant in element.iter_subtree():
                self.notify('element_removed', descendant)
                descendant.document = None

    def contains(self, element):
        return element is not None and element.document is self

    def iter_elements(self):
        """Iterate over a snapshot of all elements, in tree order."""
        with self.lock:
            elements = list(self.root.iter_subtree())
        return iter(elements)

    def query_all(self, selector, class_index=None):
        """Return elements matching ``selector``.

        :param class_index:
            An optional :class:`~cssindex.index.ClassIndex` bound to this
            document. When it tracks the ``class`` attribute and the selector
            has a class name, only elements indexed under its first class name
            are tested, in index order. An index over another attribute can
            not narrow the search and is not used.

        """
        selector = _as_selector(selector)
        class_names = selector.class_names
        if class_index is not None and class_index.document is not self:
            raise InvalidArgumentError(
                'The class index is bound to another document')
        if (class_index is not None and class_names and
                class_index.tracked_attributes == CLASS_ATTRIBUTE):
            candidates = class_index.lookup(class_names[0])
        else:
            candidates = self.iter_elements()
        return iter(selector.filter(candidates))

    def query(self, selector, class_index=None):
        return next(self.query_all(selector, class_index), None)


def _as_selector(selector):
    if isinstance(selector, Selector):
        return selector
    return Selector.compile(selector)


def _from_etree_element(etree_element):
    element = Element(
        _split_etree_tag(etree_element.tag)[1],
        [(_split_etree_tag(name)[1], value)
         for name, value in etree_element.attrib.items()],
        etree_element.text)
    for etree_child in etree_element:
        if isinstance(etree_child.tag, str):
            child = _from_etree_element(etree_child)
            child.parent = element
            element.children.append(child)
    return element


def _split_etree_tag(tag):
    pos = tag.rfind('}')
    if pos == -1:
        return '', tag
    else:
        assert tag[0] == '{'
        return tag[1:pos], tag[pos + 1:]
