import json

import pytest

from main import main


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("FAMILY_TREE_BACKEND", "sqlite")
    monkeypatch.setenv("FAMILY_TREE_DB", str(tmp_path / "tree.db"))
    monkeypatch.setenv("FAMILY_TREE_VIEWPORT_FILE", str(tmp_path / "viewport.json"))
    return tmp_path


def test_add_list_and_render(env, capsys):
    assert main(["add", "--name", "A", "--birth", "1950"]) == 0
    assert main(["add", "--name", "B", "--spouse", "1"]) == 0
    assert main(["edit", "1", "--spouse", "2"]) == 0
    assert main(["add", "--name", "C", "--parents", "1, 2"]) == 0

    capsys.readouterr()
    assert main(["list"]) == 0
    listing = capsys.readouterr().out
    assert "1\tA\t1950" in listing
    assert "3\tC\t?" in listing

    out = env / "tree.mmd"
    assert main(["render", "-o", str(out)]) == 0
    text = out.read_text(encoding="utf-8")
    assert text.count(":::marriage") == 1
    assert "N_1 --> N_3" not in text


def test_add_rejects_unknown_parent(env, capsys):
    assert main(["add", "--name", "Orphan", "--parents", "42"]) == 1
    assert "Unknown parent id: 42" in capsys.readouterr().out


def test_render_unknown_focus(env, capsys):
    main(["add", "--name", "A"])

    assert main(["render", "-o", str(env / "t.mmd"), "--focus", "9"]) == 1


def test_validate_command(env, capsys):
    main(["add", "--name", "A", "--birth", "2000"])
    main(["add", "--name", "B", "--birth", "1990", "--parents", "1"])
    capsys.readouterr()

    assert main(["validate"]) == 0
    assert "born before parent" in capsys.readouterr().out


def test_view_command_persists(env, capsys):
    assert main(["view", "--pan", "10", "20", "--zoom", "-100"]) == 0
    assert capsys.readouterr().out.strip() == "translate(10px, 20px) scale(1.1)"

    saved = json.loads(json.loads((env / "viewport.json").read_text())["familyTreeViewport"])
    assert saved["offsetX"] == 10

    assert main(["view", "--reset"]) == 0
    assert capsys.readouterr().out.strip() == "translate(0px, 0px) scale(1)"
