from typing import Callable, List, Optional, Tuple
import logging
import re

import markdown
import pymdownx.emoji
import pymdownx.superfences
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

ALERT_PATTERN = re.compile(r'^>\s*\[!(NOTE|TIP|IMPORTANT|WARNING|CAUTION)\]\s*(.*)$', re.IGNORECASE)
LOCAL_IMAGE_PREFIX = './img/'

MARKDOWN_EXTENSIONS = [
    'markdown.extensions.meta',
    'fenced_code',
    'tables',
    'sane_lists',
    'toc',
    'extra',
    'attr_list',
    'def_list',
    'abbr',
    'footnotes',
    'md_in_html',
    'admonition',
    'pymdownx.betterem',
    'pymdownx.mark',
    'pymdownx.tilde',
    'pymdownx.details',
    'pymdownx.highlight',
    'pymdownx.inlinehilite',
    'pymdownx.keys',
    'pymdownx.superfences',
    'pymdownx.tabbed',
    'pymdownx.tasklist',
    'pymdownx.magiclink',
    'pymdownx.emoji',
    'pymdownx.saneheaders',
]


def render_github_alerts(md_text: str) -> str:
    """
    Convert GitHub-style alerts to Python-Markdown admonitions.

    > [!NOTE]
    > Content

    becomes

    !!! note
        Content
    """
    out_lines = []
    in_alert = False

    for line in md_text.split('\n'):
        match = ALERT_PATTERN.match(line)
        if match:
            out_lines.append(f'!!! {match.group(1).lower()}')
            if match.group(2).strip():
                out_lines.append(f'    {match.group(2)}')
            in_alert = True
        elif in_alert and line.strip().startswith('>'):
            out_lines.append('    ' + re.sub(r'^>\s?', '', line))
        elif in_alert and not line.strip():
            out_lines.append('')
        else:
            in_alert = False
            out_lines.append(line)

    return '\n'.join(out_lines)


def strip_toc_markers(md_text: str) -> str:
    return re.sub(r'^\[TOC\]$', '', md_text, flags=re.MULTILINE | re.IGNORECASE)


DEFAULT_STEPS: List[Callable[[str], str]] = [strip_toc_markers, render_github_alerts]


def run_pipeline(md_text: str, steps: List[Callable[[str], str]]) -> str:
    out = md_text
    logger.debug(f"Running pipeline with {len(steps)} steps")
    for fn in steps:
        out = fn(out)
    return out


def render_markdown(md_text: str) -> Tuple[str, str]:
    """Render markdown to HTML. Returns the HTML and the generated TOC."""
    md_instance = markdown.Markdown(
        extensions=MARKDOWN_EXTENSIONS,
        extension_configs={
            "pymdownx.superfences": {
                "custom_fences": [
                    {
                        'name': 'mermaid',
                        'class': 'mermaid',
                        'format': pymdownx.superfences.fence_div_format
                    }
                ]
            },
            "pymdownx.emoji": {
                "emoji_index": pymdownx.emoji.gemoji,
                "emoji_generator": pymdownx.emoji.to_svg,
            }
        }
    )

    logger.debug(f"Render markdown: {len(md_text)} chars input")
    html_output = md_instance.convert(run_pipeline(md_text, DEFAULT_STEPS))
    return html_output, md_instance.toc


def process_links_in_html(html_content: str, asset_base: Optional[str] = None) -> str:
    """
    Post-process rendered HTML.
    - External links open in a new tab
    - ./img/<file> images are served from the document's folder under /content/
    """
    soup = BeautifulSoup(html_content, 'html.parser')

    for a_tag in soup.find_all('a'):
        href = a_tag.get('href', '')
        if href.startswith('http://') or href.startswith('https://'):
            a_tag['target'] = '_blank'
            a_tag['rel'] = 'noopener noreferrer'

    for img_tag in soup.find_all('img'):
        src = img_tag.get('src', '')
        if src.startswith(LOCAL_IMAGE_PREFIX):
            filename = src[len(LOCAL_IMAGE_PREFIX):]
            prefix = f"/content/{asset_base}/img/" if asset_base else "/content/img/"
            img_tag['src'] = prefix + filename
            logger.debug(f"Rewrote image {src} -> {img_tag['src']}")

    return str(soup)
