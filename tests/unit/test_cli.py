import argparse
import json

import pytest

from trend_engine.cli import build_parser, cmd_refresh, cmd_review, cmd_top, load_entities, main
from trend_engine.exceptions import UnknownTrendKindError
from trend_engine.registry import Trends


@pytest.fixture
def trends(history_store, activity_store, repository, tmp_path):
    path = tmp_path / "entities.json"
    path.write_text(
        json.dumps(
            [
                {"kind": "tags", "id": "python", "trendable": True, "attributes": {"name": "python"}},
                {"kind": "tags", "id": "rust", "attributes": {"name": "rust"}},
            ]
        ),
        encoding="utf-8",
    )
    return Trends.build(history_store, activity_store, repository, load_entities(str(path)))


def _lines(capsys):
    return [json.loads(line) for line in capsys.readouterr().out.splitlines()]


def _use(trends, entity_id, actors):
    entity = trends.tags.entity_source.resolve("tags", [entity_id])[entity_id]
    for index in range(actors):
        trends.tags.add(entity, f"acct-{index}", "en")


def test_load_entities(tmp_path):
    path = tmp_path / "entities.json"
    path.write_text(json.dumps([{"kind": "links", "id": 7, "trendable": True}]), encoding="utf-8")

    source = load_entities(str(path))

    [entity] = source.resolve("links", ["7"]).values()
    assert entity.trendable is True
    assert entity.requires_review is True
    assert load_entities(None).resolve("links", ["7"]) == {}


def test_parser_commands():
    parser = build_parser()

    args = parser.parse_args(["top", "--kind", "links", "--limit", "5", "--locale", "de"])
    assert (args.kind, args.limit, args.locale, args.all) == ("links", 5, "de", False)
    assert args.handler is cmd_top

    args = parser.parse_args(["--entities", "e.json", "refresh"])
    assert args.entities == "e.json"
    assert args.kind is None

    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_refresh_top_and_review(trends, capsys):
    _use(trends, "python", 10)
    _use(trends, "rust", 8)

    assert cmd_refresh(trends, argparse.Namespace(kind="tags")) == 0
    [stats] = _lines(capsys)
    assert stats["kind"] == "tags"
    assert stats["kept"] == 2

    assert cmd_top(trends, argparse.Namespace(kind="tags", limit=5, locale=None, all=False)) == 0
    assert [line["entity_id"] for line in _lines(capsys)] == ["python"]

    assert cmd_top(trends, argparse.Namespace(kind="tags", limit=5, locale=None, all=True)) == 0
    assert [line["entity_id"] for line in _lines(capsys)] == ["python", "rust"]

    assert cmd_review(trends, argparse.Namespace(kind=None)) == 0
    flagged = {line["kind"]: line["flagged"] for line in _lines(capsys)}
    assert flagged == {"tags": ["rust"], "links": [], "statuses": []}


def test_unknown_kind_is_rejected(trends):
    with pytest.raises(UnknownTrendKindError):
        cmd_refresh(trends, argparse.Namespace(kind="emoji"))
    with pytest.raises(UnknownTrendKindError):
        cmd_top(trends, argparse.Namespace(kind="emoji", limit=5, locale=None, all=False))


@pytest.mark.parametrize("command", ["refresh", "review", "scheduler"])
def test_writing_commands_require_entities(command, monkeypatch, capsys):
    monkeypatch.setattr(Trends, "from_settings", lambda *args: pytest.fail("must not build trends"))

    with pytest.raises(SystemExit) as excinfo:
        main([command])

    assert excinfo.value.code == 2
    assert "--entities is required" in capsys.readouterr().err


def test_unknown_kind_is_usage_error(trends, monkeypatch, capsys):
    monkeypatch.setattr(Trends, "from_settings", lambda settings, entities: trends)

    with pytest.raises(SystemExit) as excinfo:
        main(["top", "--kind", "emoji"])

    assert excinfo.value.code == 2
    assert "Unknown trend kind: emoji" in capsys.readouterr().err


def test_main_runs_top_without_entities(trends, monkeypatch, capsys):
    monkeypatch.setattr(Trends, "from_settings", lambda settings, entities: trends)
    _use(trends, "python", 10)
    trends.tags.refresh()
    capsys.readouterr()

    assert main(["top", "--kind", "tags"]) == 0
    assert [line["entity_id"] for line in _lines(capsys)] == ["python"]
