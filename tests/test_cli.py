import json

from channel_insights import cli
from channel_insights.agents.orchestrator import GenerationOrchestrator
from channel_insights.service import ChannelAnalyzer
from channel_insights.services.llm import model_chain
from fakes import FakeProvider, ScriptedBackend, spaced_items


def fake_analyzer(items):
    backend = ScriptedBackend({"model-a": RuntimeError("offline")})
    return ChannelAnalyzer(FakeProvider(items), GenerationOrchestrator(model_chain(backend, ["model-a"])))


def test_metrics_command_prints_envelope(monkeypatch, capsys):
    monkeypatch.setattr(cli, "build_analyzer", lambda: fake_analyzer(spaced_items(3)))

    exit_code = cli.main(["--log-level", "warning", "metrics", "@channel", "--max", "2"])

    output = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert output["success"] is True
    assert output["data"]["total_items"] == 2


def test_failed_command_exits_with_one(monkeypatch, capsys):
    monkeypatch.setattr(cli, "build_analyzer", lambda: fake_analyzer([]))

    exit_code = cli.main(["ideas", "@empty"])

    output = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert output["kind"] == "empty_input"


def test_metrics_command_with_analysis(monkeypatch, capsys):
    monkeypatch.setattr(cli, "build_analyzer", lambda: fake_analyzer(spaced_items(3)))

    exit_code = cli.main(["metrics", "@channel", "--analysis"])

    output = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert output["data"]["ai_analysis"]["degraded"] is True


def test_zero_max_is_rejected(monkeypatch, capsys):
    monkeypatch.setattr(cli, "build_analyzer", lambda: fake_analyzer(spaced_items(3)))

    exit_code = cli.main(["metrics", "@channel", "--max", "0"])

    output = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert output["kind"] == "invalid_request"
