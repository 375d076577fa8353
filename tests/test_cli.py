import json

import main


def test_analyze_json_output(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PETSCAN_CACHE_PATH", str(tmp_path / "cache.db"))
    for name in ("SERPER_API_KEY", "FIRECRAWL_API_KEY", "UPCITEMDB_API_KEY", "PETSCAN_CACHE_DSN"):
        monkeypatch.delenv(name, raising=False)

    code = main.main(["analyze", "--ingredients", "Chicken, Brown Rice, Peas", "--format", "json"])
    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["score"]["total"] == 100.0
    assert [i["ingredient_id"] for i in payload["ingredients"]] == ["chicken", "brown_rice", "peas"]


def test_analyze_text_dashboard(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("PETSCAN_CACHE_PATH", str(tmp_path / "cache.db"))
    monkeypatch.delenv("PETSCAN_CACHE_DSN", raising=False)
    code = main.main(
        ["analyze", "--ingredients", "Chicken, Garlic", "--allergens", "chicken", "--pet-name", "Rex"]
    )
    out = capsys.readouterr().out
    assert code == 0
    assert "=== Quick view ===" in out
    assert "Warnings:" in out
    assert "Rex" in out


def test_render_bar():
    assert main.render_bar(50, width=10) == "[#####.....]"
    assert main.render_bar(0, width=4) == "[....]"


def test_scan_photo_without_vision_key(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("PETSCAN_CACHE_PATH", str(tmp_path / "cache.db"))
    for name in ("OPENAI_API_KEY", "PETSCAN_CACHE_DSN"):
        monkeypatch.delenv(name, raising=False)
    photo = tmp_path / "bag.jpg"
    photo.write_bytes(b"\xff\xd8jpeg")

    code = main.main(["scan-photo", "--image", str(photo)])
    assert code == 1
    assert "Product not found." in capsys.readouterr().out
