import json

import pytest

from tests.conftest import make_controller
from zenspend import cli
from zenspend.cli import main


@pytest.fixture
def run(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("ZENSPEND_DATA_DIR", raising=False)
    data_dir = tmp_path / "data"

    def _run(*argv):
        code = main(["--data-dir", str(data_dir), *argv])
        out, err = capsys.readouterr()
        return code, out, err

    return _run


def test_budget_and_expenses(run):
    assert run("budget", "set", "3000")[0] == 0
    code, out, _ = run("expense", "add", "450", "food", "--description", "Dinner")

    assert code == 0
    assert "Food 450.00 (Need)" in out
    assert "Dinner" in run("expense", "list")[1]
    assert "Safe to spend today" in run("dashboard")[1]


def test_want_requires_confirm_flag(run):
    code, _, err = run("expense", "add", "2500", "Shopping", "--want")
    assert code == 1
    assert "deliberate_want" in err

    code, out, _ = run("expense", "add", "2500", "Shopping", "--want", "--confirm")
    assert code == 0
    assert "27 days of essential meals" in out
    assert "really worth it" in out


def test_validation_error_exit_code(run):
    code, _, err = run("expense", "add", "10", "Crypto")
    assert code == 1
    assert "Validation error" in err


def test_parking_commands(run):
    assert "30 days left" in run("park", "add", "4999", "Shopping", "--description", "Drone")[1]
    assert "Drone" in run("park", "list")[1]
    assert "Bought" in run("park", "convert", "1")[1]
    assert "Parked items will appear here." in run("park", "list")[1]
    assert "No parked item 1." in run("park", "convert", "1")[1]


def test_cost_per_use(run):
    code, out, _ = run("cpu", "5000", "3")
    assert code == 0
    assert "1,667 per use" in out
    assert "~9 expensive coffees" in out


def test_backup_export_and_import(run, tmp_path):
    run("budget", "set", "3000")
    run("expense", "add", "450", "Food")
    target = tmp_path / "backup.json"

    assert run("backup", "export", "--output", str(target))[0] == 0
    assert json.loads(target.read_text(encoding="utf-8"))["expenses"][0]["amount"] == "450.00"

    assert run("clear", "--yes")[0] == 0
    code, _, err = run("backup", "import", str(target))
    assert code == 1
    assert "replace_all_data" in err

    assert run("backup", "import", str(target), "--yes")[0] == 0
    assert "450.00" in run("expense", "list")[1]


def test_encrypted_backup_with_wrong_passphrase(run, tmp_path):
    run("expense", "add", "450", "Food")
    target = tmp_path / "backup.enc"
    run("backup", "export", "--output", str(target), "--passphrase", "pw")

    code, _, err = run("backup", "import", str(target), "--passphrase", "nope", "--yes")

    assert code == 1
    assert "Decryption failed" in err
    assert "450.00" in run("expense", "list")[1]


def test_clear_requires_yes(run):
    run("expense", "add", "10", "Food")
    assert run("clear")[0] == 1
    assert "10.00" in run("expense", "list")[1]


@pytest.mark.parametrize(
    "argv",
    [
        ("budget", "set", "nan"),
        ("expense", "add", "inf", "Food"),
        ("park", "add", "NaN", "Shopping"),
        ("cpu", "inf", "2"),
    ],
)
def test_non_finite_amounts_are_usage_errors(run, argv):
    with pytest.raises(SystemExit) as excinfo:
        run(*argv)

    assert excinfo.value.code == 2


def test_zero_expense_is_rejected_before_the_meal_hint(run):
    code, out, err = run("expense", "add", "0", "Food")

    assert code == 1
    assert "days of essential meals" not in out
    assert "greater than zero" in err


def test_cache_install_then_activate(run, monkeypatch, cache_storage, session):
    monkeypatch.setattr(
        cli, "build_controller", lambda config: make_controller(cache_storage, session)
    )

    code, out, _ = run("cache", "install")
    assert code == 0
    assert "Cache v2 installed." in out
    assert "Generation v2: installed" in run("cache", "status")[1]

    code, out, _ = run("cache", "activate")
    assert code == 0
    assert "Cache v2 active; removed 0 stale generation(s)." in out
    assert "Generation v2: activated" in run("cache", "status")[1]

    code, _, err = run("cache", "activate")
    assert code == 1
    assert "Cannot activate from state activated" in err
