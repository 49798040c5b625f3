#!/usr/bin/env python3
"""
Chat text normalization

Game chat arrives in the server's inline tag format, for example

	[c/FF0000:Danger!] [n:Carol] picked up [i/s5:29]

The normalizer splits that into ChatSnippet segments (text + color).
The relay hub only keeps the concatenated text; the per-snippet color
is there for callers that want to render it.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from relay_events import Color


@dataclass(frozen=True)
class ChatSnippet:
	"""One run of text with a single color"""
	text: str
	color: Color = Color.WHITE


class TextNormalizer(ABC):
	"""Turns formatted game text into an ordered list of snippets"""

	@abstractmethod
	def parse(self, text: str, base_color: Color = Color.WHITE) -> List[ChatSnippet]:
		...


def plain_text(snippets: List[ChatSnippet]) -> str:
	"""Join the snippet texts, dropping color"""
	return "".join(snippet.text for snippet in snippets)


# [tag/options:text] where the closing bracket is not escaped
_TAG_PATTERN = re.compile(
	r'\[(?P<tag>[a-zA-Z]{1,10})(?:/(?P<options>[^:]+))?:(?P<text>.+?)(?<!\\)\]'
)


def _unescape(text: str) -> str:
	return text.replace('\\[', '[').replace('\\]', ']')


class TagTextNormalizer(TextNormalizer):
	"""
	Parser for the game's inline chat tags.

	Supported tags:
		c, color	[c/RRGGBB:text]	text in that color
		n, name		[n:Name]	rendered as <Name>
		i, item		[i:ID], [i/sN:ID]	rendered as [Item Name] when the id is known

	Anything else (glyphs, achievements, unknown tags, tags with bad
	options) is kept exactly as written.
	"""

	def __init__(self, item_names: Optional[Dict[int, str]] = None):
		self.item_names = dict(item_names or {})
		self.logger = logging.getLogger(__name__)

	def parse(self, text: str, base_color: Color = Color.WHITE) -> List[ChatSnippet]:
		snippets: List[ChatSnippet] = []
		position = 0

		for match in _TAG_PATTERN.finditer(text):
			if match.start() > position:
				snippets.append(ChatSnippet(text[position:match.start()], base_color))

			snippet = self._handle_tag(match, base_color)
			if snippet is None:
				snippet = ChatSnippet(match.group(0), base_color)
			snippets.append(snippet)
			position = match.end()

		if position < len(text):
			snippets.append(ChatSnippet(text[position:], base_color))

		return snippets

	def _handle_tag(self, match: re.Match, base_color: Color) -> Optional[ChatSnippet]:
		tag = match.group('tag').lower()
		options = match.group('options')
		body = match.group('text')

		if tag in ('c', 'color'):
			try:
				color = Color.from_hex(options or '')
			except ValueError:
				self.logger.debug(f"Ignoring color tag with bad options: {match.group(0)}")
				return None
			return ChatSnippet(_unescape(body), color)

		if tag in ('n', 'name'):
			return ChatSnippet(f"<{_unescape(body)}>", base_color)

		if tag in ('i', 'item'):
			return self._item_snippet(body, options, base_color)

		return None

	def _item_snippet(self, body: str, options: Optional[str], base_color: Color) -> Optional[ChatSnippet]:
		try:
			item_id = int(body)
		except ValueError:
			return None

		name = self.item_names.get(item_id)
		if name is None:
			return None

		stack = 1
		for option in (options or '').split(','):
			option = option.strip().lower()
			if option.startswith(('s', 'x')) and option[1:].isdigit():
				stack = int(option[1:])

		if stack > 1:
			return ChatSnippet(f"[{name} ({stack})]", base_color)
		return ChatSnippet(f"[{name}]", base_color)
