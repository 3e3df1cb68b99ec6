"""
Content transformer for the CMS rich-text editor.

This module converts markdown project descriptions into the Slate-style
node tree stored by the CMS rich-text field.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

import markdown as md
from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from markdown.extensions import Extension
from markdown.inlinepatterns import SimpleTagInlineProcessor

logger = logging.getLogger('community_cms_migrator.importers.content_transformer')

# Markdown parser node names -> rich-text editor element and mark types
PLATE_NODE_TYPES: Dict[str, Any] = {
    'paragraph': 'p',
    'block_quote': 'blockquote',
    'code_block': 'code_block',
    'link': 'a',
    'ul_list': 'ul',
    'ol_list': 'ol',
    'listItem': 'li',
    'heading': {
        1: 'h1',
        2: 'h2',
        3: 'h3',
        4: 'h4',
        5: 'h5',
        6: 'h6',
    },
    'emphasis_mark': 'italic',
    'strong_mark': 'bold',
    'delete_mark': 'strikethrough',
    'inline_code_mark': 'code',
    'thematic_break': 'thematic_break',
    'image': 'img',
}

# HTML emitted by Python-Markdown -> parser node names
_MARK_TAGS = {
    'em': 'emphasis_mark',
    'i': 'emphasis_mark',
    'strong': 'strong_mark',
    'b': 'strong_mark',
    'del': 'delete_mark',
    's': 'delete_mark',
    'code': 'inline_code_mark',
}

_HEADING_TAGS = {f'h{level}': level for level in range(1, 7)}


class StrikethroughExtension(Extension):
    """Render ``~~text~~`` as ``<del>``."""

    def extendMarkdown(self, md_instance):
        md_instance.inlinePatterns.register(
            SimpleTagInlineProcessor(r'(~~)(.+?)~~', 'del'), 'strikethrough', 175
        )


class ContentTransformer:
    """Transforms markdown content into rich-text editor nodes."""

    def __init__(
        self,
        node_types: Optional[Dict[str, Any]] = None,
        image_caption_key: str = 'cap',
        image_source_key: str = 'src',
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize content transformer.

        Args:
            node_types: Parser node name -> editor type table (defaults to PLATE_NODE_TYPES)
            image_caption_key: Attribute holding the image alt text
            image_source_key: Attribute holding the image URL
            logger: Optional logger instance (defaults to module logger)
        """
        self.node_types = copy.deepcopy(node_types or PLATE_NODE_TYPES)
        self.image_caption_key = image_caption_key
        self.image_source_key = image_source_key
        self.logger = logger or logging.getLogger('community_cms_migrator.importers.content_transformer')

        self.md = md.Markdown(
            extensions=[
                'fenced_code',
                'sane_lists',
                StrikethroughExtension()
            ]
        )

        self.logger.debug("Initialized ContentTransformer with markdown extensions")

    def transform_markdown(self, markdown_content: Optional[str]) -> List[Dict[str, Any]]:
        """
        Convert markdown content to a list of rich-text block nodes.

        Args:
            markdown_content: Markdown string to convert

        Returns:
            Block nodes; a single empty paragraph for empty input
        """
        if not markdown_content or not markdown_content.strip():
            return [self._empty_paragraph()]

        self.md.reset()
        html_content = self.md.convert(markdown_content)

        soup = BeautifulSoup(html_content, 'html.parser')
        nodes = self._convert_blocks(soup.contents)

        self.logger.debug(f"Converted {len(markdown_content)} chars of markdown to {len(nodes)} blocks")

        return nodes or [self._empty_paragraph()]

    def _convert_blocks(self, contents) -> List[Dict[str, Any]]:
        nodes: List[Dict[str, Any]] = []
        pending: List[Dict[str, Any]] = []

        def flush_pending():
            if any(self._has_content(node) for node in pending):
                nodes.append(self._element('paragraph', list(pending)))
            pending.clear()

        for child in contents:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                pending.extend(self._convert_inline([child], {}))
                continue
            if not isinstance(child, Tag):
                continue

            block = self._convert_block(child)
            if block is None:
                pending.extend(self._convert_inline([child], {}))
            else:
                flush_pending()
                nodes.append(block)

        flush_pending()
        return nodes

    def _convert_block(self, tag: Tag) -> Optional[Dict[str, Any]]:
        name = tag.name

        if name in _HEADING_TAGS:
            return {
                'type': self.node_types['heading'][_HEADING_TAGS[name]],
                'children': self._inline_children(tag)
            }

        if name == 'p':
            return self._element('paragraph', self._inline_children(tag))

        if name == 'blockquote':
            return self._element('block_quote', self._convert_blocks(tag.contents) or [self._empty_paragraph()])

        if name in ('ul', 'ol'):
            items = [self._convert_list_item(li) for li in tag.find_all('li', recursive=False)]
            return self._element('ul_list' if name == 'ul' else 'ol_list', items or [self._empty_text()])

        if name == 'li':
            return self._convert_list_item(tag)

        if name == 'pre':
            return self._convert_code_block(tag)

        if name == 'hr':
            return self._element('thematic_break', [self._empty_text()])

        return None

    def _convert_list_item(self, tag: Tag) -> Dict[str, Any]:
        return self._element('listItem', self._convert_blocks(tag.contents) or [self._empty_paragraph()])

    def _convert_code_block(self, tag: Tag) -> Dict[str, Any]:
        code = tag.find('code')
        source = code if code is not None else tag
        node = self._element('code_block', [{'text': source.get_text().rstrip('\n')}])

        for css_class in (code.get('class') or []) if code is not None else []:
            if css_class.startswith('language-'):
                node['language'] = css_class[len('language-'):]
                break

        return node

    def _inline_children(self, tag: Tag) -> List[Dict[str, Any]]:
        return self._convert_inline(tag.contents, {}) or [self._empty_text()]

    def _convert_inline(self, contents, marks: Dict[str, bool]) -> List[Dict[str, Any]]:
        parts: List[Dict[str, Any]] = []

        for child in contents:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                text = str(child)
                if text:
                    parts.append(self._leaf(text, marks))
                continue
            if not isinstance(child, Tag):
                continue

            name = child.name
            if name in _MARK_TAGS:
                active = dict(marks)
                active[self.node_types[_MARK_TAGS[name]]] = True
                parts.extend(self._convert_inline(child.contents, active))
            elif name == 'a':
                parts.append({
                    'type': self.node_types['link'],
                    'link': child.get('href', ''),
                    'children': self._convert_inline(child.contents, marks) or [self._leaf('', marks)]
                })
            elif name == 'img':
                parts.append({
                    'type': self.node_types['image'],
                    self.image_source_key: child.get('src', ''),
                    self.image_caption_key: child.get('alt', ''),
                    'children': [self._empty_text()]
                })
            elif name == 'br':
                parts.append(self._leaf('\n', marks))
            else:
                parts.extend(self._convert_inline(child.contents, marks))

        return parts

    def _element(self, node_name: str, children: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {'type': self.node_types[node_name], 'children': children}

    def _empty_paragraph(self) -> Dict[str, Any]:
        return self._element('paragraph', [self._empty_text()])

    @staticmethod
    def _empty_text() -> Dict[str, Any]:
        return {'text': ''}

    @staticmethod
    def _leaf(text: str, marks: Dict[str, bool]) -> Dict[str, Any]:
        leaf: Dict[str, Any] = {'text': text}
        leaf.update(marks)
        return leaf

    @staticmethod
    def _has_content(node: Dict[str, Any]) -> bool:
        if 'type' in node:
            return True
        return bool(node.get('text', '').strip())
