import json

from bazi_compute.run import main


def test_bad_timezone_prints_structured_failure(capsys):
    code = main([
        "--birth-date", "1990-03-15", "--birth-time", "10:30",
        "--gender", "male", "--timezone", "Nowhere/City",
    ])
    assert code == 1
    output = json.loads(capsys.readouterr().out)
    assert output["success"] is False
    assert output["kind"] == "invalid_birth_data"


def test_timezone_or_coordinates_required(capsys):
    code = main(["--birth-date", "1990-03-15", "--birth-time", "10:30", "--gender", "female"])
    assert code == 1
    assert "latitude" in json.loads(capsys.readouterr().out)["message"]


def test_full_run_with_as_of(capsys):
    code = main([
        "--birth-date", "1990-03-15", "--birth-time", "10:30",
        "--gender", "male", "--timezone", "Asia/Shanghai",
        "--as-of", "2026-10-19",
    ])
    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["pillars"]["day"]["ganzhi"] == "己酉"
    assert output["as_of"]["age"] == 36
    assert output["as_of"]["annual_cycle"]["year"] == 2026
    assert len(output["liu_nian"]) == 100
