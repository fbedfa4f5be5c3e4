"""Runs the recover-keys command line tool against files on disk."""
import csv
import os

import pytest
import yaml

from key_recovery.recover_keys import EXIT_FAILED, EXIT_OK, EXIT_TOO_MANY_MISSING, main


def _read_csv(path):
    with open(path, encoding="utf-8-sig", newline="") as f:
        return list(csv.reader(f))


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    for name in ("KEY_RECOVERY_CONFIG_FILE", "KEY_RECOVERY_STAGE_TIMEOUT_MS", "KEY_RECOVERY_MAX_WORKERS",
                 "KEY_RECOVERY_SHOW_PROGRESS", "KEY_RECOVERY_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump({
        "max_workers": 2,
        "poll_interval_ms": 5,
        "logging": {"log_level": "INFO", "log_to_console": False}
    }), encoding="utf-8")

    def write(name, content):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)

    return {"dir": tmp_path, "config": str(config_path), "write": write}


def test_writes_recovered_table(workspace):
    source = workspace["write"]("menu.properties", "Menu_Play=Play\nMenu_Quit=Quit\n")
    resources = workspace["write"]("strings.txt", "Menu_Play\nMenu_Quit\nPress start\n")
    output = str(workspace["dir"] / "out" / "menu.csv")

    exit_code = main(["--source", source, "--resources", resources, "--output", output,
                      "--config", workspace["config"]])

    assert exit_code == EXIT_OK
    assert _read_csv(output) == [["key", "en"], ["Menu_Play", "Play"], ["Menu_Quit", "Quit"]]


def test_default_output_path_next_to_source(workspace):
    source = workspace["write"]("menu.properties", "Menu_Play=Play\n")
    hints = workspace["write"]("hints.txt", "Menu_Play\n")

    assert main(["--source", source, "--hint-file", hints, "--config", workspace["config"]]) == EXIT_OK
    assert os.path.exists(os.path.join(workspace["dir"], "menu.csv"))


def test_too_many_missing_keys(workspace):
    source = workspace["write"]("menu.properties", "Menu_Play=Play\nZzz_A=Alpha\nZzz_B=Beta\n")
    resources = workspace["write"]("strings.txt", "Menu_Play\n")
    output = str(workspace["dir"] / "menu.csv")

    exit_code = main(["--source", source, "--resources", resources, "--output", output,
                      "--config", workspace["config"]])

    assert exit_code == EXIT_TOO_MANY_MISSING
    rows = _read_csv(output)
    assert rows[1] == ["Menu_Play", "Play"]
    assert rows[2] == ["<!MissingKey:Alpha>", "Alpha"]
    assert rows[3] == ["<!MissingKey:Beta>", "Beta"]


def test_prior_export_orders_rows_and_writes_diff(workspace):
    source = workspace["write"]("menu.properties", "Menu_Play=Play\nMenu_Quit=Quit\n")
    resources = workspace["write"]("strings.txt", "Menu_Play\n")
    prior = workspace["write"]("prior.csv", "key,en\nMenu_Quit,Quit old\nGone_Key,Gone\n")
    output = str(workspace["dir"] / "menu.csv")

    exit_code = main(["--source", source, "--resources", resources, "--prior-export", prior,
                      "--output", output, "--config", workspace["config"]])

    assert exit_code == EXIT_OK
    assert _read_csv(output) == [["key", "en"], ["Menu_Play", "Play"], ["Menu_Quit", "Quit"]]
    diff_rows = _read_csv(str(workspace["dir"] / "menu_diff_fmt.csv"))
    assert diff_rows[0] == ["key", "en", "old_en", "is_add_en", "is_update_en", "is_remove_en"]
    assert diff_rows[1] == ["Menu_Quit", "Quit", "Quit old", "", "1", ""]
    assert diff_rows[2] == ["Gone_Key", "", "Gone", "", "", "1"]
    assert diff_rows[3] == ["Menu_Play", "Play", "", "1", "", ""]


def test_vanished_prior_keys_stay_out_of_main_table(workspace):
    source = workspace["write"]("menu.properties", "Menu_Play=Play\n")
    hints = workspace["write"]("hints.txt", "Menu_Play\n")
    prior = workspace["write"]("prior.csv", "key,en\nGone_Key,Gone\n")
    output = str(workspace["dir"] / "menu.csv")

    exit_code = main(["--source", source, "--hint-file", hints, "--prior-export", prior,
                      "--output", output, "--config", workspace["config"]])

    assert exit_code == EXIT_OK
    main_keys = [row[0] for row in _read_csv(output)]
    diff_keys = [row[0] for row in _read_csv(str(workspace["dir"] / "menu_diff_fmt.csv"))]
    assert main_keys == ["key", "Menu_Play"]
    assert "Gone_Key" not in main_keys
    assert diff_keys == ["key", "Gone_Key", "Menu_Play"]


def test_prior_only_locales_carried_into_diff(workspace):
    source = workspace["write"]("menu.properties", "Menu_Play=Play\nMenu_Quit=Quit\n")
    resources = workspace["write"]("strings.txt", "Menu_Play\nMenu_Quit\n")
    prior = workspace["write"]("prior.csv", "key,en,de,_notes\nMenu_Quit,Quit,Beenden,x\n")
    output = str(workspace["dir"] / "menu.csv")

    exit_code = main(["--source", source, "--resources", resources, "--prior-export", prior,
                      "--output", output, "--config", workspace["config"]])

    assert exit_code == EXIT_OK
    assert _read_csv(output)[0] == ["key", "en"]
    diff_rows = _read_csv(str(workspace["dir"] / "menu_diff_fmt.csv"))
    assert diff_rows[0] == ["key", "en", "de", "old_en", "is_add_en", "is_update_en", "is_remove_en"]
    assert diff_rows[1] == ["Menu_Quit", "Quit", "Beenden", "Quit", "", "", ""]
    assert diff_rows[2] == ["Menu_Play", "Play", "", "", "1", "", ""]


def test_missing_source_file(workspace):
    missing = str(workspace["dir"] / "missing.properties")
    assert main(["--source", missing, "--config", workspace["config"]]) == EXIT_FAILED


def test_empty_source_table(workspace):
    source = workspace["write"]("empty.properties", "# nothing here\n")
    assert main(["--source", source, "--config", workspace["config"]]) == EXIT_FAILED


def test_invalid_config(workspace):
    source = workspace["write"]("menu.properties", "Menu_Play=Play\n")
    bad_config = workspace["write"]("bad.yaml", "stage_timeout_ms: soon\n")
    assert main(["--source", source, "--config", bad_config]) == EXIT_FAILED
