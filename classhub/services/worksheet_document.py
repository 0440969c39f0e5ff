"""
Worksheet Document model.

A small mutable element tree built from a worksheet's HTML. It stands in for
the live DOM of the embedded document: the state extractor reads and writes
it, the replay view serializes it back to HTML, and the bulk feedback export
queries it for question text and mark schemes.
"""
from html import escape
from html.parser import HTMLParser

VOID_ELEMENTS = frozenset([
    'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input',
    'link', 'meta', 'source', 'track', 'wbr',
])
RAW_TEXT_ELEMENTS = frozenset(['script', 'style'])
TEXT_INPUT_TYPES = frozenset([
    'text', 'number', 'email', 'search', 'tel', 'url',
])


class TextNode:
    def __init__(self, data, raw=False):
        self.data = data
        self.raw = raw
        self.parent = None

    def to_html(self):
        if self.raw:
            return self.data
        return escape(self.data, quote=False)


class Element:
    def __init__(self, tag, attrs=None):
        self.tag = tag
        self.attrs = dict(attrs or {})
        self.children = []
        self.parent = None

    def __repr__(self):
        ident = self.attrs.get('id')
        return f"<Element {self.tag}{'#' + ident if ident else ''}>"

    # ---- attributes ----

    def get(self, name, default=None):
        return self.attrs.get(name, default)

    def has_attr(self, name):
        return name in self.attrs

    def set(self, name, value=None):
        self.attrs[name] = value

    def remove_attr(self, name):
        self.attrs.pop(name, None)

    @property
    def id(self):
        return self.attrs.get('id')

    @property
    def classes(self):
        return (self.attrs.get('class') or '').split()

    def has_class(self, name):
        return name in self.classes

    def add_class(self, name):
        classes = self.classes
        if name not in classes:
            classes.append(name)
            self.attrs['class'] = ' '.join(classes)

    def remove_class(self, name):
        classes = [c for c in self.classes if c != name]
        if classes:
            self.attrs['class'] = ' '.join(classes)
        else:
            self.attrs.pop('class', None)

    # ---- tree ----

    def append(self, node):
        if node.parent is not None:
            node.parent.remove(node)
        node.parent = self
        self.children.append(node)
        return node

    def remove(self, node):
        self.children.remove(node)
        node.parent = None

    def iter(self):
        """Yield this element and every descendant element in document order."""
        yield self
        for child in self.children:
            if isinstance(child, Element):
                yield from child.iter()

    def find_all(self, predicate):
        return [el for el in self.iter() if el is not self and predicate(el)]

    def find(self, predicate):
        for el in self.iter():
            if el is not self and predicate(el):
                return el
        return None

    def closest(self, predicate):
        node = self.parent
        while node is not None:
            if predicate(node):
                return node
            node = node.parent
        return None

    def contains(self, other):
        node = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    @property
    def text(self):
        parts = []
        for child in self.children:
            if isinstance(child, TextNode):
                if not child.raw:
                    parts.append(child.data)
            else:
                parts.append(child.text)
        return ''.join(parts)

    # ---- form values ----

    def is_text_field(self):
        if self.tag == 'textarea':
            return True
        if self.tag != 'input':
            return False
        return (self.attrs.get('type') or 'text').lower() in TEXT_INPUT_TYPES

    @property
    def value(self):
        """Current value of a text field, or None if it was never set."""
        if self.tag == 'textarea':
            if not self.children:
                return None
            return self.text
        if 'value' not in self.attrs:
            return None
        return self.attrs['value'] or ''

    def set_value(self, value):
        if self.tag == 'textarea':
            for child in list(self.children):
                self.remove(child)
            self.append(TextNode(value))
        else:
            self.attrs['value'] = value

    # ---- serialization ----

    def to_html(self):
        attrs = ''.join(
            f' {name}' if value is None else f' {name}="{escape(str(value), quote=True)}"'
            for name, value in self.attrs.items()
        )
        if self.tag in VOID_ELEMENTS:
            return f'<{self.tag}{attrs}>'
        inner = ''.join(child.to_html() for child in self.children)
        return f'<{self.tag}{attrs}>{inner}</{self.tag}>'


class _TreeBuilder(HTMLParser):
    def __init__(self, root):
        super().__init__(convert_charrefs=True)
        self.root = root
        self.stack = [root]

    def handle_starttag(self, tag, attrs):
        element = Element(tag, attrs)
        self.stack[-1].append(element)
        if tag not in VOID_ELEMENTS:
            self.stack.append(element)

    def handle_startendtag(self, tag, attrs):
        self.stack[-1].append(Element(tag, attrs))

    def handle_endtag(self, tag):
        # Pop to the nearest matching open element; stray end tags are ignored.
        for index in range(len(self.stack) - 1, 0, -1):
            if self.stack[index].tag == tag:
                del self.stack[index:]
                return

    def handle_data(self, data):
        current = self.stack[-1]
        current.append(TextNode(data, raw=current.tag in RAW_TEXT_ELEMENTS))

    def handle_comment(self, data):
        self.stack[-1].append(TextNode(f'<!--{data}-->', raw=True))

    def handle_decl(self, decl):
        self.stack[-1].append(TextNode(f'<!{decl}>', raw=True))


class WorksheetDocument:
    """A parsed worksheet. Mutations happen in place."""

    def __init__(self, html=''):
        self.root = Element('#document')
        builder = _TreeBuilder(self.root)
        builder.feed(html or '')
        builder.close()

    @classmethod
    def parse(cls, html):
        return cls(html)

    def get_element_by_id(self, element_id):
        return self.root.find(lambda el: el.attrs.get('id') == element_id)

    def find_all(self, predicate):
        return self.root.find_all(predicate)

    def find(self, predicate):
        return self.root.find(predicate)

    def elements_with_attr(self, name, value=None):
        if value is None:
            return self.find_all(lambda el: el.has_attr(name))
        return self.find_all(lambda el: el.attrs.get(name) == value)

    @property
    def body(self):
        return self.find(lambda el: el.tag == 'body') or self.root

    @property
    def head(self):
        return self.find(lambda el: el.tag == 'head')

    def to_html(self):
        return ''.join(child.to_html() for child in self.root.children)
