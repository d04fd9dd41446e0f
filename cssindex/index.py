"""Indexes derived from document mutations."""

import logging
import threading
import weakref

from webencodings import ascii_lower

from .compiler import split_whitespace
from .parser import InvalidArgumentError

logger = logging.getLogger(__name__)


class ElementIndex:
    """Lookup structure kept in sync with a document.

    Binding scans the elements present in ``document`` and subscribes to its
    changes, while holding the document lock so that no change is missed or
    seen twice.

    Subclasses implement :meth:`initialize_data`, :meth:`add_element`,
    :meth:`remove_element`, :meth:`on_add_attribute` and
    :meth:`on_remove_attribute`. The last two are only called for attributes
    named in :attr:`tracked_attributes`.

    """
    #: Lower-case names of the attributes the index depends on.
    tracked_attributes = frozenset()

    def __init__(self, document):
        if document is None:
            raise InvalidArgumentError('Document is required')
        self.document = document
        with document.lock:
            self.initialize_data()
            count = 0
            for element in document.iter_elements():
                self.add_element(element)
                count += 1
            document.add_observer(self)
        logger.debug(f'{type(self).__name__} bound, {count} elements indexed')

    def close(self):
        """Stop following the document."""
        self.document.remove_observer(self)
        logger.debug(f'{type(self).__name__} closed')

    def is_tracked(self, attribute):
        return ascii_lower(attribute.name) in self.tracked_attributes

    def element_added(self, element):
        """Called after ``element`` joined the document."""
        if element is None:
            raise InvalidArgumentError('Element is required')
        self.add_element(element)

    def element_removed(self, element):
        """Called before ``element`` leaves the document."""
        if element is None:
            raise InvalidArgumentError('Element is required')
        self.remove_element(element)

    def attribute_added(self, element, attribute):
        """Called after ``attribute`` was added to ``element``."""
        if element is None or attribute is None:
            raise InvalidArgumentError('Element and attribute are required')
        if self.is_tracked(attribute):
            self.on_add_attribute(element, attribute)

    def attribute_removed(self, element, attribute):
        """Called after ``attribute`` was removed from ``element``,
        or after its value changed.

        ``attribute`` holds the value from before the change.

        """
        if element is None or attribute is None:
            raise InvalidArgumentError('Element and attribute are required')
        if self.is_tracked(attribute):
            self.on_remove_attribute(element, attribute)

    def initialize_data(self):
        raise NotImplementedError

    def add_element(self, element):
        raise NotImplementedError

    def remove_element(self, element):
        raise NotImplementedError

    def on_add_attribute(self, element, attribute):
        raise NotImplementedError

    def on_remove_attribute(self, element, attribute):
        raise NotImplementedError


class ClassIndex(ElementIndex):
    """Elements by class name.

    Each whitespace-separated token of an element’s first ``class``
    attribute maps to the elements carrying it, in insertion order. Elements
    are referenced weakly.

    :param document:
        The :class:`~cssindex.tree.Document` to follow.
    :param attribute_name:
        The attribute holding class names.

    """
    def __init__(self, document, attribute_name='class'):
        if not attribute_name:
            raise InvalidArgumentError('Attribute name is required')
        self.attribute_name = attribute_name
        self.tracked_attributes = frozenset([ascii_lower(attribute_name)])
        self._lock = threading.Lock()
        super().__init__(document)

    def initialize_data(self):
        with self._lock:
            self._data = {}

    def _class_names(self, value):
        return split_whitespace(value or '')

    def _current_class_names(self, element):
        attribute = element.get_attribute(self.attribute_name)
        if attribute is None:
            return []
        return self._class_names(attribute.value)

    def _add(self, element, class_names):
        with self._lock:
            for class_name in class_names:
                bucket = self._data.get(class_name)
                if bucket is None:
                    bucket = self._data[class_name] = (
                        weakref.WeakValueDictionary())
                bucket.setdefault(id(element), element)

    def _remove(self, element, class_names):
        with self._lock:
            for class_name in class_names:
                bucket = self._data.get(class_name)
                if bucket is None or bucket.pop(id(element), None) is None:
                    logger.debug(
                        f'{element!r} was not indexed under {class_name!r}')
                    continue
                if not bucket:
                    del self._data[class_name]

    def add_element(self, element):
        self._add(element, self._current_class_names(element))

    def remove_element(self, element):
        self._remove(element, self._current_class_names(element))

    def on_add_attribute(self, element, attribute):
        # The first attribute with that name wins over later duplicates.
        self._add(element, self._current_class_names(element))

    def on_remove_attribute(self, element, attribute):
        self._remove(element, self._class_names(attribute.value))
        if self.document.contains(element):
            self._add(element, self._current_class_names(element))

    def lookup(self, class_name):
        """Return a tuple of the elements having class ``class_name``.

        The tuple is a snapshot: later changes are not reflected in it.

        """
        with self._lock:
            bucket = self._data.get(class_name)
            if not bucket:
                return ()
            return tuple(bucket.values())

    __getitem__ = lookup

    def tokens(self):
        """Return a snapshot list of the class names with elements."""
        with self._lock:
            return [name for name, bucket in self._data.items() if bucket]

    def __len__(self):
        return len(self.tokens())
