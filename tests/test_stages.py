"""Tests for the stage runners."""

import httpx

from newsdigest.errors import RateLimitedError
from newsdigest.generation import GeminiProvider, MockLLMProvider
from newsdigest.models import ExtractStatus, Kind, Scope, SourceRun
from newsdigest.pipeline import (
    ArticleCaptureStage,
    CombinedSynthesisStage,
    SourceSynthesisStage,
    TextExtractionStage,
    UrlDiscoveryStage,
)
from newsdigest.pipeline.stages import SOURCE_PAGE_NAME, build_articles

from .conftest import FakeRenderer, article_page, news_handler, source_page

RUN_DATE = "2024-05-01"


def story_urls(host, count=5):
    return [f"https://{host}/2024/05/01/story-{i}.html" for i in range(1, count + 1)]


def news_site(host):
    """Five discovered URLs: four render, and one of those has too little text."""
    source_url = f"https://{host}/"
    urls = story_urls(host)
    pages = {source_url: source_page(urls)}
    for i, url in enumerate(urls[:4], 1):
        body = "SHORT_BODY" if i == 4 else f"Story {i} body"
        pages[url] = article_page(f"Story {i} headline", body)
    return source_url, urls, pages


def run_per_source_stages(ctx, source_run):
    discovered = UrlDiscoveryStage(ctx).run(source_run)
    captured = ArticleCaptureStage(ctx).run(source_run, discovered.articles)
    extracted = TextExtractionStage(ctx).run(source_run.source_dir, captured.articles)
    return discovered, captured, extracted


def test_per_source_stages_count_down(make_context, store, sleeps):
    source_url, urls, pages = news_site("www.alpha-news.com")
    generator = MockLLMProvider(handler=news_handler({source_url: urls}))
    ctx = make_context(generator, FakeRenderer(pages))
    source_run = SourceRun(name="alpha-news", url=source_url, run_date=RUN_DATE, root=store.root)

    discovered, captured, extracted = run_per_source_stages(ctx, source_run)
    synthesized = SourceSynthesisStage(ctx).run(source_run.source_dir, [Kind.DIGEST])

    assert discovered.urls == urls
    assert (source_run.source_dir / SOURCE_PAGE_NAME).exists()
    assert captured.succeeded == 4
    assert captured.failed == 1
    assert extracted.succeeded == 3
    assert extracted.failed == 1
    assert synthesized.packed == {"digest": 3}
    assert len(synthesized.documents) == 1

    prompt = generator.calls[-1][0]
    assert prompt.count("--- ARTICLE START ---") == 3
    assert urls[3] not in prompt

    document = store.latest(Scope.SOURCE, Kind.DIGEST, source_run.source_dir)
    assert document.content == "# Analysis\n\nGenerated text."
    assert document.path.name.startswith(f"digest_alpha-news_{RUN_DATE}_default_")

    # Delays sit between units, never after the last one
    assert sleeps == [1.5] * 4 + [10.0] * 3


def test_manifest_tracks_statuses(make_context, store):
    source_url, urls, pages = news_site("www.alpha-news.com")
    ctx = make_context(MockLLMProvider(handler=news_handler({source_url: urls})), FakeRenderer(pages))
    source_run = SourceRun(name="alpha-news", url=source_url, run_date=RUN_DATE, root=store.root)

    run_per_source_stages(ctx, source_run)

    articles = store.load_manifest(source_run.source_dir)
    assert [a.url for a in articles] == urls
    assert [a.extract_status for a in articles] == [
        ExtractStatus.EXTRACTED,
        ExtractStatus.EXTRACTED,
        ExtractStatus.EXTRACTED,
        ExtractStatus.EXTRACT_FAILED,
        ExtractStatus.PENDING,
    ]
    assert articles[4].error == f"Render failed: {urls[4]}"


def test_combined_synthesis_packs_one_document_per_source(make_context, store):
    sites = [news_site("www.alpha-news.com"), news_site("www.beta-times.com")]
    pages = {}
    for _, _, site_pages in sites:
        pages.update(site_pages)
    generator = MockLLMProvider(handler=news_handler({url: urls for url, urls, _ in sites}))
    ctx = make_context(generator, FakeRenderer(pages))

    for name, (source_url, _, _) in zip(["alpha-news", "beta-times"], sites):
        source_run = SourceRun(name=name, url=source_url, run_date=RUN_DATE, root=store.root)
        run_per_source_stages(ctx, source_run)
        SourceSynthesisStage(ctx).run(source_run.source_dir, [Kind.DIGEST, Kind.ESSAY])

    outcome = CombinedSynthesisStage(ctx).run(store.date_dir(RUN_DATE), [Kind.DIGEST])

    assert outcome.packed == {"digest": 2}
    assert outcome.succeeded == 1
    prompt = generator.calls[-1][0]
    assert prompt.count("--- DOCUMENT START ---") == 2
    assert prompt.index("ID: alpha-news") < prompt.index("ID: beta-times")
    assert outcome.documents[0].name.startswith(f"daily_digest_{RUN_DATE}_default_")


def test_combined_synthesis_falls_back_to_other_kind(make_context, store):
    ctx = make_context(MockLLMProvider())
    date_dir = store.date_dir(RUN_DATE)
    source_dir = date_dir / "alpha-news"
    source_dir.mkdir(parents=True)
    store.write(Scope.SOURCE, Kind.ESSAY, source_dir, "Only an essay here.")

    units = CombinedSynthesisStage(ctx).source_units([source_dir], Kind.DIGEST)

    assert [u.identifier for u in units] == ["alpha-news"]
    assert units[0].body == "Only an essay here."


def test_combined_synthesis_without_documents_is_empty(make_context, store):
    generator = MockLLMProvider()
    ctx = make_context(generator)
    date_dir = store.date_dir(RUN_DATE)
    (date_dir / "alpha-news").mkdir(parents=True)

    outcome = CombinedSynthesisStage(ctx).run(date_dir, [Kind.DIGEST])

    assert outcome.empty
    assert generator.calls == []


def test_discovery_reports_unrenderable_source(make_context, store):
    generator = MockLLMProvider()
    ctx = make_context(generator, FakeRenderer({}))
    source_run = SourceRun(name="gone", url="https://gone.example.com/", run_date=RUN_DATE, root=store.root)

    outcome = UrlDiscoveryStage(ctx).run(source_run)

    assert outcome.empty
    assert "could not be rendered" in outcome.errors[0]
    assert generator.calls == []


def test_discovery_uses_extraction_temperature(make_context, store):
    source_url, urls, pages = news_site("www.alpha-news.com")
    generator = MockLLMProvider(handler=news_handler({source_url: urls}))
    ctx = make_context(generator, FakeRenderer(pages))
    source_run = SourceRun(name="alpha-news", url=source_url, run_date=RUN_DATE, root=store.root)

    UrlDiscoveryStage(ctx).run(source_run)

    assert generator.calls[0][2] == 0.1


def test_extraction_exhausted_rate_limit_marks_article_failed(make_context, store, sleeps):
    source_dir = store.date_dir(RUN_DATE) / "alpha-news"
    html_path = store.raw_html_path(source_dir, "alpha_story")
    html_path.parent.mkdir(parents=True)
    html_path.write_text(article_page("Story", "Body"), encoding="utf-8")
    generator = MockLLMProvider(responses=[RateLimitedError("429") for _ in range(4)])
    ctx = make_context(generator)

    outcome = TextExtractionStage(ctx).run(source_dir)

    assert outcome.failed == 1
    assert outcome.articles[0].extract_status == ExtractStatus.EXTRACT_FAILED
    assert generator.api_calls == 4
    assert sleeps == [1.0, 2.0, 3.0]
    assert not store.parsed_text_path(source_dir, "alpha_story").exists()


def write_captured_pages(store, source_dir, names):
    for name in names:
        path = store.raw_html_path(source_dir, name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(article_page(name, "Body"), encoding="utf-8")


def test_extraction_malformed_generator_reply_marks_each_article_failed(make_context, store):
    source_dir = store.date_dir(RUN_DATE) / "alpha-news"
    write_captured_pages(store, source_dir, ["first", "second"])
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>proxy</html>")))
    ctx = make_context(GeminiProvider(api_key="test-key", client=client))

    outcome = TextExtractionStage(ctx).run(source_dir)

    assert outcome.failed == 2
    assert [a.extract_status for a in outcome.articles] == [ExtractStatus.EXTRACT_FAILED] * 2
    assert not store.parsed_text_path(source_dir, "first").exists()
    assert not store.parsed_text_path(source_dir, "second").exists()


def test_extraction_undecodable_page_marks_article_failed(make_context, store):
    source_dir = store.date_dir(RUN_DATE) / "alpha-news"
    write_captured_pages(store, source_dir, ["good"])
    store.raw_html_path(source_dir, "garbled").write_bytes(b"\xff\xfe\x00bad")
    generator = MockLLMProvider(handler=news_handler({}))
    ctx = make_context(generator)

    outcome = TextExtractionStage(ctx).run(source_dir)

    statuses = {a.basename: a.extract_status for a in outcome.articles}
    assert statuses == {"garbled": ExtractStatus.EXTRACT_FAILED, "good": ExtractStatus.EXTRACTED}
    assert outcome.succeeded == 1
    assert outcome.failed == 1


def test_extraction_can_skip_already_extracted(make_context, store):
    source_dir = store.date_dir(RUN_DATE) / "alpha-news"
    for name in ("done", "todo"):
        path = store.raw_html_path(source_dir, name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(article_page(name, "Body"), encoding="utf-8")
    store.write_article_text(source_dir, "done", "Existing text")
    generator = MockLLMProvider(handler=news_handler({}))
    ctx = make_context(generator)

    outcome = TextExtractionStage(ctx).run(source_dir, skip_extracted=True)

    assert outcome.succeeded == 1
    assert len(generator.calls) == 1
    assert store.parsed_text_path(source_dir, "done").read_text(encoding="utf-8") == "Existing text"
    assert store.parsed_text_path(source_dir, "todo").exists()


def test_build_articles_keeps_basenames_unique():
    articles = build_articles([
        "https://example.com/a?x=1",
        "https://example.com/a_x=1",
    ])

    assert [a.basename for a in articles] == ["example.com_a_x=1", "example.com_a_x=1_2"]
    assert [a.index for a in articles] == [0, 1]
