"""
BMAD dialect: product requirements, architecture, story and QA documents.
"""

from anvil.adapters.bmad.adapter import BmadAdapter
from anvil.adapters.bmad.parsers import (
    ArchitectureParser,
    ParsedArchitecture,
    ParsedPrd,
    ParsedQA,
    ParsedStory,
    PrdParser,
    QAParser,
    StoryParser,
    parse_user_story,
)
from anvil.adapters.bmad.templates import render_architecture, render_prd, render_qa, render_story

__all__ = [
    "BmadAdapter",
    # Parsers
    "PrdParser",
    "ArchitectureParser",
    "StoryParser",
    "QAParser",
    "parse_user_story",
    # Records
    "ParsedPrd",
    "ParsedArchitecture",
    "ParsedStory",
    "ParsedQA",
    # Renderers
    "render_prd",
    "render_architecture",
    "render_story",
    "render_qa",
]
