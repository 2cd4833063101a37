from __future__ import annotations

from sentinel_pipeline.processing.formatting import (
    analyze_content_quality,
    calculate_read_time,
    extract_content_info,
    format_article_content,
    quality_grade,
    quality_keywords,
    quality_tags,
)


def test_format_builds_heading_quote_list_and_emphasis() -> None:
    body = (
        "Port Reopens\n\n"
        "The minister announced the port reopened today.\n\n"
        '"We are ready to reopen."\n\n'
        "- cranes\n- berths"
    )

    html = format_article_content(body)

    assert html == (
        "<h2>Port Reopens</h2>"
        "<p>The <strong>minister</strong> <strong>announced</strong> the port reopened today.</p>"
        "<blockquote>We are ready to reopen.</blockquote>"
        "<ul><li>cranes</li><li>berths</li></ul>"
    )


def test_format_adds_default_sections_without_headings() -> None:
    html = format_article_content("Alpha one.\n\nBeta two.\n\nGamma three.")
    assert html == (
        "<h2>Background</h2><p>Alpha one.</p>"
        "<h2>Current Situation</h2><p>Beta two.</p><p>Gamma three.</p>"
    )


def test_format_strips_markup_and_escapes() -> None:
    assert format_article_content("Profits <b>rose</b> & fell.") == "<p>Profits rose &amp; fell.</p>"
    assert format_article_content("") == ""
    assert format_article_content("<br/>") == ""


def test_single_list_item_becomes_bold_line() -> None:
    html = format_article_content("Update.\n\n* only item")
    assert html.endswith("<p><strong>• only item</strong></p>")


def test_read_time_rounds_up() -> None:
    assert calculate_read_time("") == 0
    assert calculate_read_time("one") == 1
    assert calculate_read_time("word " * 450) == 2
    assert calculate_read_time("word " * 451) == 3


def test_extract_content_info() -> None:
    text = (
        "Cambodia announced a new digital payment plan today. "
        "Weather was fine. "
        "The ministry said exports rose sharply this year."
    )
    info = extract_content_info(text)

    assert info["keyPoints"] == [
        "Cambodia announced a new digital payment plan today",
        "The ministry said exports rose sharply this year",
    ]
    assert info["wordCount"] == 19
    assert info["readTime"] == 1
    assert info["summary"].startswith("Cambodia announced")


def test_quality_grades() -> None:
    assert quality_grade(90) == "excellent"
    assert quality_grade(89.9) == "good"
    assert quality_grade(60) == "acceptable"
    assert quality_grade(45) == "poor"
    assert quality_grade(44) == "unacceptable"


def test_analyze_content_quality_rich_article() -> None:
    body = "\n\n".join(["word " * 130] * 5)
    result = analyze_content_quality(
        body,
        formatted_html="<h2>Background</h2><p>...</p>",
        key_insights=["a", "b"],
        relevance_score=80,
        safety_score=100,
    )

    # 30 + 15 + 10 + 10 + 80*0.15 + 100*0.2
    assert result["score"] == 97.0
    assert result["grade"] == "excellent"
    assert result["paragraphCount"] == 5
    assert result["headingCount"] == 1


def test_analyze_content_quality_thin_article() -> None:
    result = analyze_content_quality("short text")
    assert result["score"] == 20.0
    assert result["grade"] == "unacceptable"
    assert result["keyPointCount"] == 0


def test_quality_tags_and_keywords_follow_grade() -> None:
    rich = analyze_content_quality(
        "\n\n".join(["word " * 130] * 5),
        formatted_html="<h2>Background</h2>",
        key_insights=["a", "b"],
        relevance_score=80,
    )
    thin = analyze_content_quality("short text")

    assert quality_tags(rich) == ["quality-excellent", "comprehensive"]
    assert quality_keywords(rich) == ["high-quality", "comprehensive", "detailed"]
    assert quality_tags(thin) == ["quality-unacceptable", "needs-review"]
    assert quality_keywords(thin) == []
