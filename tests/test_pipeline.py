"""End-to-end runs with every external tool faked."""

import json
import os
import signal
import threading

import megaunion


def _accounts(config):
	creds = megaunion.megaunion_accounts_load(config.accounts.file)
	return megaunion.megaunion_accounts_plan(creds, config)


def test_two_accounts_end_to_end(monkeypatch, runner, spawner, config):
	monkeypatch.setattr(megaunion.shutil, "which", lambda name: None)
	stop = threading.Event()
	spawner.on_mount = lambda cmd: stop.set()

	code = megaunion.megaunion_pipeline_run(
		config, _accounts(config), ("pw1", "pw2"), stop
	)

	assert code == 0
	webdav = [cmd for cmd in spawner.commands if cmd[0] == "mega-webdav"]
	assert sorted(webdav) == [
		["mega-webdav", "/AnotherMegaFolder", "--port=8081", "--public"],
		["mega-webdav", "/MyMegaFiles", "--port=8080", "--public"],
	]

	document = open(config.rclone.config_file).read()
	assert document.index("[mega1]") < document.index("[mega2]")
	assert "url = http://127.0.0.1:8080/tok8080/MyMegaFiles\n" in document
	assert "url = http://127.0.0.1:8081/tok8081/AnotherMegaFolder\n" in document

	create = runner.find("rclone", "config", "create")
	assert create[0][3:7] == ["mega_union", "union", "upstreams", "mega1: mega2:"]
	assert create[1][3:7] == ["encrypted", "crypt", "remote", "mega_union:"]
	assert spawner.commands[-1][:3] == ["rclone", "mount", "encrypted:"]
	assert runner.commands[-1] == ["umount", config.mount.mount_point]
	assert spawner.processes[-1].waited


def test_config_written_before_remotes_are_composed(monkeypatch, runner, spawner, config):
	seen = []

	def checking_runner(cmd, **kwargs):
		if cmd[:3] == ["rclone", "config", "create"]:
			seen.append(open(config.rclone.config_file).read().count("type = webdav"))
		return runner(cmd, **kwargs)

	monkeypatch.setattr(megaunion, "megaunion_util_run", checking_runner)
	config.mount.enabled = False
	megaunion.megaunion_pipeline_run(
		config, _accounts(config), ("a", "b"), threading.Event()
	)
	assert seen == [2, 2]


def test_slow_account_gets_fallback_url(runner, spawner, config):
	spawner.serve = False
	config.mount.enabled = False
	code = megaunion.megaunion_pipeline_run(
		config, _accounts(config), ("a", "b"), threading.Event()
	)
	assert code == 0
	document = open(config.rclone.config_file).read()
	assert "url = http://127.0.0.1:8080\n" in document
	assert "url = http://127.0.0.1:8081\n" in document

def test_stop_before_setup_skips_mount(runner, spawner, config):
	stop = threading.Event()
	stop.set()
	code = megaunion.megaunion_pipeline_run(
		config, _accounts(config), ("a", "b"), stop
	)
	assert code == 0
	assert [cmd for cmd in spawner.commands if cmd[1:2] == ["mount"]] == []
	assert runner.find("rclone", "config", "create") == []


def test_stop_during_compose_skips_mount(monkeypatch, runner, spawner, config):
	stop = threading.Event()

	def stopping_runner(cmd, **kwargs):
		if cmd[3:5] == ["encrypted", "crypt"]:
			stop.set()
		return runner(cmd, **kwargs)

	monkeypatch.setattr(megaunion, "megaunion_util_run", stopping_runner)
	code = megaunion.megaunion_pipeline_run(
		config, _accounts(config), ("a", "b"), stop
	)
	assert code == 0
	assert [cmd for cmd in spawner.commands if cmd[1:2] == ["mount"]] == []


def test_mount_that_cannot_start_exits_1(monkeypatch, runner, spawner, config, capsys):
	def no_rclone(cmd, log_path=None, env=None):
		if cmd[1:2] == ["mount"]:
			return None
		return spawner(cmd, log_path=log_path, env=env)

	monkeypatch.setattr(megaunion, "megaunion_util_spawn", no_rclone)
	code = megaunion.megaunion_pipeline_run(
		config, _accounts(config), ("a", "b"), threading.Event()
	)
	assert code == 1
	assert "rclone mount could not be started" in capsys.readouterr().err


def test_sigterm_while_logging_sets_stop(
	monkeypatch, runner, spawner, accounts_file, fast_toml
):
	seen = {}

	def signalled_pipeline(config, accounts, secrets, stop):
		monkeypatch.setattr(megaunion, "_verbose", True)
		with megaunion._log_lock:
			os.kill(os.getpid(), signal.SIGTERM)
			seen["stopped"] = stop.wait(2.0)
			megaunion.megaunion_util_log("debug", "still logging")
		return 0

	monkeypatch.setattr(megaunion, "megaunion_pipeline_run", signalled_pipeline)
	original = signal.getsignal(signal.SIGTERM)
	code = megaunion.megaunion_main(
		[
			"-c",
			str(fast_toml),
			"run",
			"--accounts",
			str(accounts_file),
			"--no-drop-privileges",
		]
	)
	assert code == 0
	assert seen["stopped"] is True
	assert signal.getsignal(signal.SIGTERM) is original



def test_run_command(runner, spawner, accounts_file, fast_toml, tmp_path, capsys):
	code = megaunion.megaunion_main(
		[
			"--no-color",
			"-c",
			str(fast_toml),
			"run",
			"--accounts",
			str(accounts_file),
			"--no-mount",
			"--no-drop-privileges",
		]
	)
	assert code == 0
	assert (tmp_path / "rclone.conf").exists()
	assert "CRYPTO_PASSWORD not set" in capsys.readouterr().out


def test_run_missing_accounts_file_exits_1(fast_toml, tmp_path, capsys):
	code = megaunion.megaunion_main(
		["-c", str(fast_toml), "run", "--accounts", str(tmp_path / "none.json")]
	)
	assert code == 1
	assert "Accounts file not found" in capsys.readouterr().err


def test_run_require_secrets(runner, spawner, accounts_file, fast_toml):
	code = megaunion.megaunion_main(
		[
			"-c",
			str(fast_toml),
			"run",
			"--accounts",
			str(accounts_file),
			"--require-secrets",
			"--no-drop-privileges",
		]
	)
	assert code == 1
	assert spawner.commands == []


def test_run_dry_run_has_no_side_effects(accounts_file, fast_toml, tmp_path, capsys):
	code = megaunion.megaunion_main(
		["-n", "-c", str(fast_toml), "run", "--accounts", str(accounts_file)]
	)
	out = capsys.readouterr().out
	assert code == 0
	assert not (tmp_path / "rclone.conf").exists()
	assert not (tmp_path / "state").exists()
	assert not (tmp_path / "main").exists()
	assert "[dry-run] Would run: mega-login a ****" in out
	assert "[dry-run] Would start: mega-webdav /MyMegaFiles --port=8080 --public" in out
	assert "[dry-run] Would start: rclone mount encrypted:" in out


def test_plan_json(accounts_file, capsys):
	code = megaunion.megaunion_main(
		["plan", "--accounts", str(accounts_file), "--format", "json", "--base-port", "9000"]
	)
	assert code == 0
	data = json.loads(capsys.readouterr().out)
	assert [(d["name"], d["port"], d["folder"]) for d in data] == [
		("mega1", 9000, "/MyMegaFiles"),
		("mega2", 9001, "/AnotherMegaFolder"),
	]
	assert all("pass" not in d and "password" not in d for d in data)


def test_plan_text(accounts_file, capsys):
	assert megaunion.megaunion_main(["plan", "--accounts", str(accounts_file)]) == 0
	out = capsys.readouterr().out
	assert "mega2" in out and "8081" in out
	assert "mount point:   /app/main" in out


def test_render(accounts_file, capsys):
	assert megaunion.megaunion_main(["render", "--accounts", str(accounts_file)]) == 0
	out = capsys.readouterr().out
	assert out == megaunion.megaunion_rclone_render(
		[
			megaunion.RemoteBlock("mega1", "http://127.0.0.1:8080"),
			megaunion.RemoteBlock("mega2", "http://127.0.0.1:8081"),
		]
	)


def test_check_reports_missing_tools(monkeypatch, accounts_file, capsys):
	monkeypatch.setattr(megaunion.shutil, "which", lambda name: None)
	assert megaunion.megaunion_main(["check", "--accounts", str(accounts_file)]) == 1
	err = capsys.readouterr().err
	assert "Command not found: mega-login" in err
	assert "Command not found: rclone" in err


def test_check_passes(monkeypatch, accounts_file, capsys):
	monkeypatch.setattr(megaunion.shutil, "which", lambda name: f"/usr/bin/{name}")
	assert megaunion.megaunion_main(["check", "--accounts", str(accounts_file)]) == 0
	assert "All checks passed" in capsys.readouterr().out


def test_unmount_command(monkeypatch, runner):
	monkeypatch.setattr(megaunion.shutil, "which", lambda name: None)
	assert megaunion.megaunion_main(["unmount", "--mount-point", "/srv/vault"]) == 0
	assert runner.commands == [["umount", "/srv/vault"]]
