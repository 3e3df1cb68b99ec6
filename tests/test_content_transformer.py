"""Tests for markdown to rich-text node conversion."""

import pytest

from importers.content_transformer import PLATE_NODE_TYPES, ContentTransformer


@pytest.fixture
def transformer():
    return ContentTransformer()


class TestBlocks:

    @pytest.mark.parametrize('content', [None, '', '   \n'])
    def test_empty_content(self, transformer, content):
        assert transformer.transform_markdown(content) == [{'type': 'p', 'children': [{'text': ''}]}]

    def test_paragraph(self, transformer):
        assert transformer.transform_markdown('Hello world') == [
            {'type': 'p', 'children': [{'text': 'Hello world'}]}
        ]

    @pytest.mark.parametrize('level', [1, 2, 3, 4, 5, 6])
    def test_headings(self, transformer, level):
        nodes = transformer.transform_markdown('#' * level + ' Title')
        assert nodes == [{'type': f'h{level}', 'children': [{'text': 'Title'}]}]

    def test_unordered_list(self, transformer):
        nodes = transformer.transform_markdown('- one\n- two')

        assert nodes == [{
            'type': 'ul',
            'children': [
                {'type': 'li', 'children': [{'type': 'p', 'children': [{'text': 'one'}]}]},
                {'type': 'li', 'children': [{'type': 'p', 'children': [{'text': 'two'}]}]}
            ]
        }]

    def test_ordered_list(self, transformer):
        nodes = transformer.transform_markdown('1. first\n2. second')

        assert nodes[0]['type'] == 'ol'
        assert len(nodes[0]['children']) == 2

    def test_block_quote(self, transformer):
        assert transformer.transform_markdown('> quoted') == [
            {'type': 'blockquote', 'children': [{'type': 'p', 'children': [{'text': 'quoted'}]}]}
        ]

    def test_fenced_code_block(self, transformer):
        nodes = transformer.transform_markdown('```python\nprint(1)\n```')

        assert nodes == [{'type': 'code_block', 'children': [{'text': 'print(1)'}], 'language': 'python'}]

    def test_thematic_break(self, transformer):
        nodes = transformer.transform_markdown('before\n\n***\n\nafter')

        assert [node['type'] for node in nodes] == ['p', 'thematic_break', 'p']

    def test_multiple_paragraphs(self, transformer):
        nodes = transformer.transform_markdown('one\n\ntwo')

        assert nodes == [
            {'type': 'p', 'children': [{'text': 'one'}]},
            {'type': 'p', 'children': [{'text': 'two'}]}
        ]


class TestInline:

    def test_bold_and_italic_marks(self, transformer):
        nodes = transformer.transform_markdown('Hello **bold** and *italic*')

        assert nodes[0]['children'] == [
            {'text': 'Hello '},
            {'text': 'bold', 'bold': True},
            {'text': ' and '},
            {'text': 'italic', 'italic': True}
        ]

    def test_nested_marks(self, transformer):
        leaf = transformer.transform_markdown('***both***')[0]['children'][0]

        assert leaf['text'] == 'both'
        assert leaf['bold'] is True
        assert leaf['italic'] is True

    def test_strikethrough(self, transformer):
        assert transformer.transform_markdown('~~gone~~')[0]['children'] == [
            {'text': 'gone', 'strikethrough': True}
        ]

    def test_inline_code(self, transformer):
        assert transformer.transform_markdown('run `make`')[0]['children'] == [
            {'text': 'run '},
            {'text': 'make', 'code': True}
        ]

    def test_link(self, transformer):
        assert transformer.transform_markdown('[site](https://example.com)')[0]['children'] == [
            {'type': 'a', 'link': 'https://example.com', 'children': [{'text': 'site'}]}
        ]

    def test_image(self, transformer):
        assert transformer.transform_markdown('![A cat](https://cdn.example.com/cat.png)')[0]['children'] == [{
            'type': 'img',
            'src': 'https://cdn.example.com/cat.png',
            'cap': 'A cat',
            'children': [{'text': ''}]
        }]


def test_custom_node_table():
    node_types = dict(PLATE_NODE_TYPES, paragraph='paragraph')
    transformer = ContentTransformer(node_types=node_types, image_caption_key='alt', image_source_key='url')

    nodes = transformer.transform_markdown('![x](https://cdn.example.com/x.png)')
    assert nodes[0]['type'] == 'paragraph'
    assert nodes[0]['children'][0]['url'] == 'https://cdn.example.com/x.png'
    assert nodes[0]['children'][0]['alt'] == 'x'


def test_transformer_is_reusable(transformer):
    transformer.transform_markdown('# First')
    assert transformer.transform_markdown('Second') == [{'type': 'p', 'children': [{'text': 'Second'}]}]
