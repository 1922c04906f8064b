"""Prompt templates for every Generator call the pipeline makes."""

import re

from ..models import Kind

URL_DISCOVERY_PROMPT = """Analyze the HTML source below, taken from {source_url}. List every distinct absolute URL that links to an individual news article hosted on {domain} or one of its subdomains.

Rules:
1. Output only the URLs, one per line, with no introduction, numbering or commentary.
2. Every URL must start with http:// or https:// and belong to {domain}.
3. Prefer links attached to headlines, story summaries and prominent story teasers.
4. The path should point at a specific story (several path segments, a .html ending or a date such as YYYY/MM/DD), not a section front.
5. Leave out section and category pages, author and tag pages, ads and trackers, login and subscription links, site navigation, help and policy pages, social links, galleries, email actions, downloads and archive indexes.

Keep each URL exactly as it appears, query string included.

HTML Content:
```html
{markup}
```
Article URLs:"""

EXTRACTION_PROMPT = """Extract the complete, verbatim body text of the main news article in the HTML below.

Instructions:
1. Output plain text only: the article's narrative paragraphs.
2. Do not summarize, paraphrase or reword anything. Keep every sentence as written.
3. Include the full body, from the first paragraph to the last.
4. Leave out markup, headlines, subheadings, bylines, datelines, navigation, ads, related links, captions, comments, share buttons and legal notices.
5. If the page holds several articles, extract only the most prominent one.
6. Separate paragraphs with a blank line, following the original paragraph breaks.

HTML Content:
```html
{markup}
```
Article Text:"""

DIGEST_PROMPT = """You are a neutral news analyst. Turn the {unit_label} below (each delimited by '--- {label} START ---' and '--- {label} END ---') into a daily news digest.

Format:
1. Work out a short, accurate headline for each item from its content.
2. Open with a 2-4 sentence objective summary of the most significant news.
3. Group stories under themed sections (## Politics, ## World, ## Business, ...) with a 3-6 sentence factual summary per story, using your headlines.
4. Add a `## Key Facts Reported` section with 3-5 verifiable facts.
5. Add a `## Narrative Analysis` section (2-4 sentences) on narratives or perspectives that recur across items.
6. Optionally add one `## Analyst's Note` of 1-2 sentences, drawn only from the reported facts.

Use only the material provided.

**Input:**
{payload}"""

ESSAY_PROMPT = """You are a careful news analyst and a clear, engaging writer. Using only the {unit_label} below (each delimited by '--- {label} START ---' and '--- {label} END ---'), write an analytical essay of roughly 500-1000 words on the main themes, events and narratives they present.

Structure:
1. Introduction: name the dominant theme or event and set up the analysis.
2. Synthesis and analysis: connect information across items, note agreements and contradictions, and examine underlying narratives and implications. Refer to stories by headlines you derive from their content.
3. Critical reflection: explore complexities, open questions and tensions the reporting reveals, without adding outside facts or personal opinion.
4. Conclusion: a short closing thought on what this collection of news signifies.

Keep an analytical, formal tone.

**Source material:**
{payload}"""

_FENCE_START = re.compile(r"^\s*```(?:markdown|md)?[ \t]*\n?", re.IGNORECASE)
_FENCE_END = re.compile(r"\n?```\s*$")


def url_discovery_prompt(markup: str, source_url: str, domain: str) -> str:
    return URL_DISCOVERY_PROMPT.format(source_url=source_url, domain=domain, markup=markup)


def extraction_prompt(markup: str) -> str:
    return EXTRACTION_PROMPT.format(markup=markup)


def synthesis_prompt(kind: Kind, payload: str, label: str = "ARTICLE") -> str:
    """Prompt for a digest or essay over a packed payload."""
    unit_label = "news articles" if label == "ARTICLE" else "per-source analyses"
    template = DIGEST_PROMPT if kind == Kind.DIGEST else ESSAY_PROMPT
    return template.format(unit_label=unit_label, label=label, payload=payload)


def clean_markdown(text: str) -> str:
    """Strip a surrounding ```markdown fence from generated output."""
    text = _FENCE_START.sub("", text, count=1)
    text = _FENCE_END.sub("", text, count=1)
    return text.strip()
