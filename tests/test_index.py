"""

Test suite for the class index.

"""

import gc
import random
import threading
import weakref
import xml.etree.ElementTree as etree  # noqa: N813

import pytest

from cssindex import (
    Attribute, ClassIndex, Document, Element, ElementIndex,
    InvalidArgumentError, compile_selector)
from cssindex.compiler import split_whitespace


def make_document(*classes):
    root = Element('body')
    for i, class_ in enumerate(classes):
        attributes = {'id': f'e{i}'}
        if class_ is not None:
            attributes['class'] = class_
        root.append(Element('p', attributes))
    return Document(root)


def ids(elements):
    return [element.id for element in elements]


def assert_consistent(document, index):
    """Compare the index with classes read from the elements."""
    expected = {}
    for element in document.iter_elements():
        for class_name in split_whitespace(element.get('class') or ''):
            expected.setdefault(class_name, set()).add(id(element))
    assert set(index.tokens()) == set(expected)
    for class_name, element_ids in expected.items():
        found = [id(element) for element in index.lookup(class_name)]
        assert len(found) == len(set(found))
        assert set(found) == element_ids


def test_all_tokens_indexed():
    document = make_document('a b c')
    index = ClassIndex(document)
    element, = document.root.children
    for class_name in 'abc':
        assert index.lookup(class_name) == (element,)
    assert index.lookup('d') == ()
    assert sorted(index.tokens()) == ['a', 'b', 'c']
    assert len(index) == 3


def test_document_order_at_bind():
    document = make_document('x', 'x y', 'y')
    index = ClassIndex(document)
    assert ids(index.lookup('x')) == ['e0', 'e1']
    assert ids(index.lookup('y')) == ['e1', 'e2']
    assert ids(index['y']) == ['e1', 'e2']


def test_whitespace_runs():
    document = make_document('  a \t\n b\f', '', None)
    index = ClassIndex(document)
    assert ids(index.lookup('a')) == ['e0']
    assert ids(index.lookup('b')) == ['e0']
    assert sorted(index.tokens()) == ['a', 'b']


def test_class_names_are_case_sensitive():
    index = ClassIndex(make_document('Note'))
    assert ids(index.lookup('Note')) == ['e0']
    assert index.lookup('note') == ()


def test_remove_class_attribute():
    document = make_document('x y', 'x', 'z')
    index = ClassIndex(document)
    first = document.root.children[0]
    removed = first.remove_attribute('class')
    assert removed.value == 'x y'
    assert ids(index.lookup('x')) == ['e1']
    assert index.lookup('y') == ()
    assert ids(index.lookup('z')) == ['e2']
    assert_consistent(document, index)


def test_change_class_value():
    document = make_document('a b', 'b')
    index = ClassIndex(document)
    element = document.root.children[0]
    element.set_attribute('class', 'b c')
    assert index.lookup('a') == ()
    assert ids(index.lookup('b')).count('e0') == 1
    assert ids(index.lookup('c')) == ['e0']
    assert_consistent(document, index)


def test_class_attribute_name_is_case_insensitive():
    document = make_document('a')
    index = ClassIndex(document)
    element = document.root.children[0]
    element.set_attribute('CLASS', 'b')
    assert index.lookup('a') == ()
    assert ids(index.lookup('b')) == ['e0']


def test_add_class_attribute():
    document = make_document(None)
    index = ClassIndex(document)
    element = document.root.children[0]
    element.add_attribute('class', 'new one')
    assert ids(index.lookup('new')) == ['e0']
    assert ids(index.lookup('one')) == ['e0']


def test_duplicate_class_attributes():
    document = make_document('x')
    index = ClassIndex(document)
    element = document.root.children[0]
    element.add_attribute('class', 'z')
    assert ids(index.lookup('x')) == ['e0']
    assert index.lookup('z') == ()
    element.remove_attribute('class')
    assert index.lookup('x') == ()
    assert ids(index.lookup('z')) == ['e0']
    assert_consistent(document, index)


def test_untracked_attributes_are_ignored():
    document = make_document('a')
    index = ClassIndex(document)
    element = document.root.children[0]
    element.set_attribute('title', 'a b')
    index.attribute_removed(element, Attribute('title', 'a'))
    assert ids(index.lookup('a')) == ['e0']
    assert index.lookup('b') == ()


def test_idempotent_removal():
    document = make_document('a b', 'a')
    index = ClassIndex(document)
    first, second = document.root.children
    document.root.remove(first)
    index.element_removed(first)
    index.element_removed(first)
    index.attribute_removed(first, Attribute('class', 'a b unknown'))
    index.attribute_removed(second, Attribute('class', 'never-seen'))
    assert ids(index.lookup('a')) == ['e1']
    assert index.lookup('b') == ()
    assert_consistent(document, index)


def test_detached_elements_are_not_reindexed():
    document = make_document('a')
    index = ClassIndex(document)
    element = document.root.children[0]
    document.root.remove(element)
    element.set_attribute('class', 'b')
    index.attribute_removed(element, Attribute('class', 'a'))
    assert index.lookup('a') == ()
    assert index.lookup('b') == ()


def test_subtree_insertion_and_removal():
    document = make_document('a')
    index = ClassIndex(document)
    section = Element('section', {'class': 'a outer'})
    section.append(Element('p', {'class': 'inner a'}))
    document.root.append(section)
    assert [e.name for e in index.lookup('a')] == ['p', 'section', 'p']
    assert index.lookup('inner') == (section.children[0],)
    document.root.remove(section)
    assert ids(index.lookup('a')) == ['e0']
    assert index.lookup('outer') == index.lookup('inner') == ()
    assert_consistent(document, index)


def test_move_keeps_single_entry():
    document = make_document('a', 'b')
    index = ClassIndex(document)
    first, second = document.root.children
    second.append(first)
    assert index.lookup('a') == (first,)
    assert_consistent(document, index)


def test_lookup_is_a_snapshot():
    document = make_document('x')
    index = ClassIndex(document)
    snapshot = index.lookup('x')
    assert isinstance(snapshot, tuple)
    document.root.append(Element('p', {'class': 'x'}))
    assert len(snapshot) == 1
    assert len(index.lookup('x')) == 2


def test_custom_attribute_name():
    document = make_document('a')
    document.root.children[0].set_attribute('data-tags', 'red green')
    index = ClassIndex(document, attribute_name='data-tags')
    assert ids(index.lookup('red')) == ['e0']
    assert index.lookup('a') == ()
    document.root.children[0].set_attribute('DATA-TAGS', 'blue')
    assert index.lookup('red') == ()
    assert ids(index.lookup('blue')) == ['e0']


def test_close():
    document = make_document('a')
    index = ClassIndex(document)
    index.close()
    document.root.append(Element('p', {'class': 'a'}))
    assert ids(index.lookup('a')) == ['e0']


def test_index_does_not_own_elements():
    index = ClassIndex(make_document())
    element = Element('p', {'class': 'ghost'})
    index.element_added(element)
    assert len(index.lookup('ghost')) == 1
    reference = weakref.ref(element)
    del element
    gc.collect()
    assert reference() is None
    assert index.lookup('ghost') == ()


def test_invalid_arguments():
    with pytest.raises(InvalidArgumentError):
        ClassIndex(None)
    with pytest.raises(InvalidArgumentError):
        ClassIndex(make_document(), attribute_name='')
    index = ClassIndex(make_document())
    with pytest.raises(InvalidArgumentError):
        index.element_added(None)
    with pytest.raises(InvalidArgumentError):
        index.element_removed(None)
    with pytest.raises(InvalidArgumentError):
        index.attribute_added(None, Attribute('class', 'a'))


def test_abstract_index():
    with pytest.raises(NotImplementedError):
        ElementIndex(make_document())


def test_query_with_index():
    document = Document.from_etree(etree.fromstring(
        '<ul><li class="x" id="a"/><li class="y" id="b"/>'
        '<li class="x y" id="c"/><p class="x" id="d"/></ul>'))
    index = ClassIndex(document)
    selector = compile_selector('li.x')
    assert ids(document.query_all(selector)) == ['a', 'c']
    assert ids(document.query_all(selector, class_index=index)) == ['a', 'c']
    assert document.query('li.y', class_index=index).id == 'b'
    assert document.query('li.z', class_index=index) is None

    other = ClassIndex(make_document('x'))
    with pytest.raises(InvalidArgumentError):
        list(document.query_all(selector, class_index=other))


def test_query_ignores_index_over_other_attribute():
    document = Document.from_etree(etree.fromstring(
        '<body><p class="red" id="a"/>'
        '<p class="red" data-tags="red" id="b"/>'
        '<p data-tags="red" id="c"/></body>'))
    index = ClassIndex(document, attribute_name='data-tags')
    assert ids(index.lookup('red')) == ['b', 'c']
    selector = compile_selector('p.red')
    assert ids(document.query_all(selector)) == ['a', 'b']
    assert ids(document.query_all(selector, class_index=index)) == ['a', 'b']
    assert document.query('p.red', class_index=index).id == 'a'

    other = ClassIndex(make_document('red'), attribute_name='data-tags')
    with pytest.raises(InvalidArgumentError):
        list(document.query_all(selector, class_index=other))


def test_concurrent_mutations():
    document = make_document(*(['a b'] * 20))
    index = ClassIndex(document)
    elements = list(document.root.children)
    values = ['a', 'a b', 'b c', 'c', '', 'd a']
    errors = []
    stop = threading.Event()

    def mutate(seed):
        generator = random.Random(seed)
        try:
            for _ in range(300):
                element = generator.choice(elements)
                action = generator.random()
                if action < 0.6:
                    element.set_attribute('class', generator.choice(values))
                elif action < 0.8:
                    element.remove_attribute('class')
                else:
                    with document.lock:
                        if element.parent is not None:
                            document.root.remove(element)
                        else:
                            document.root.append(element)
        except Exception as exception:  # pragma: no cover
            errors.append(exception)

    def read():
        try:
            while not stop.is_set():
                for class_name in 'abcd':
                    found = index.lookup(class_name)
                    assert len(found) == len(set(map(id, found)))
        except Exception as exception:  # pragma: no cover
            errors.append(exception)

    readers = [threading.Thread(target=read) for _ in range(2)]
    writers = [threading.Thread(target=mutate, args=(i,)) for i in range(4)]
    for thread in readers + writers:
        thread.start()
    for thread in writers:
        thread.join()
    stop.set()
    for thread in readers:
        thread.join()

    assert errors == []
    assert_consistent(document, index)
