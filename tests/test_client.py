import json

import pytest

from feedback_engine.client import APIClient, parse_json


def test_parse_plain_json():
    assert parse_json('{"justification": "ok"}') == {"justification": "ok"}


def test_parse_fenced_json():
    content = '```json\n{"narrative": "Variant B wins."}\n```'
    assert parse_json(content) == {"narrative": "Variant B wins."}


def test_parse_json_with_surrounding_prose():
    content = 'Here you go: {"justification": "Fix {soon}"} Hope this helps.'
    assert parse_json(content) == {"justification": "Fix {soon}"}


def test_parse_json_rejects_non_objects():
    with pytest.raises(json.JSONDecodeError):
        parse_json("[1, 2, 3]")
    with pytest.raises(json.JSONDecodeError):
        parse_json("no json at all")


def test_client_requires_api_key(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(ValueError):
        APIClient()
