"""Shared fixtures: isolated globals and fakes for the external tools."""

import os
import threading
from pathlib import Path

import pytest

import megaunion


class FakeRunner:
	"""Stands in for megaunion_util_run and records every command."""

	def __init__(self):
		self.calls = []
		self.results = {}
		self._lock = threading.Lock()

	def __call__(self, cmd, timeout=None, env=None, capture=True, secrets=()):
		with self._lock:
			self.calls.append((list(cmd), env))
		for n in range(len(cmd), 0, -1):
			key = tuple(cmd[:n])
			if key in self.results:
				return self.results[key]
		if cmd[1:2] == ["obscure"]:
			return 0, f"obscured-{cmd[2]}\n", ""
		return 0, "", ""

	@property
	def commands(self):
		return [cmd for cmd, _ in self.calls]

	def find(self, *prefix):
		return [cmd for cmd in self.commands if tuple(cmd[: len(prefix)]) == prefix]


class FakeProcess:
	"""Minimal Popen stand-in, already exited."""

	def __init__(self, cmd):
		self.args = cmd
		self.returncode = 0
		self.waited = False
		self.terminated = False

	def wait(self, timeout=None):
		self.waited = True
		return self.returncode

	def terminate(self):
		self.terminated = True

	def kill(self):
		self.terminated = True


class FakeSpawner:
	"""Stands in for megaunion_util_spawn.

	mega-webdav launches write the ready line to their log file, like the
	real server does once it serves.
	"""

	def __init__(self, serve=True):
		self.calls = []
		self.serve = serve
		self.on_mount = None
		self.processes = []
		self._lock = threading.Lock()

	def __call__(self, cmd, log_path=None, env=None):
		with self._lock:
			self.calls.append((list(cmd), log_path, env))
		if cmd[0] == "mega-webdav" and log_path is not None:
			log_path.parent.mkdir(parents=True, exist_ok=True)
			if self.serve:
				port = cmd[2].split("=", 1)[1]
				log_path.write_text(
					"MEGAcmd starting\n"
					f"Serving via webdav {cmd[1]}: http://127.0.0.1:{port}/tok{port}{cmd[1]}\n"
				)
			else:
				log_path.write_text("MEGAcmd starting\n")
		if cmd[1:2] == ["mount"] and self.on_mount:
			self.on_mount(cmd)
		process = FakeProcess(list(cmd))
		with self._lock:
			self.processes.append(process)
		return process

	@property
	def commands(self):
		return [cmd for cmd, _, _ in self.calls]


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
	monkeypatch.setattr(megaunion, "_verbose", False)
	monkeypatch.setattr(megaunion, "_quiet", False)
	monkeypatch.setattr(megaunion, "_no_color", True)
	monkeypatch.setattr(megaunion, "_dry_run", False)
	monkeypatch.setattr(
		megaunion, "MEGAUNION_DEFAULT_CONFIG", str(tmp_path / "absent.toml")
	)
	for name in list(os.environ):
		if name.startswith("MEGAUNION_"):
			monkeypatch.delenv(name)
	for name in ("PUID", "PGID", "CRYPTO_PASSWORD", "CRYPTO_PASSWORD2"):
		monkeypatch.delenv(name, raising=False)


@pytest.fixture
def runner(monkeypatch):
	fake = FakeRunner()
	monkeypatch.setattr(megaunion, "megaunion_util_run", fake)
	return fake


@pytest.fixture
def spawner(monkeypatch):
	fake = FakeSpawner()
	monkeypatch.setattr(megaunion, "megaunion_util_spawn", fake)
	return fake


@pytest.fixture
def accounts_file(tmp_path):
	path = tmp_path / "accounts.json"
	path.write_text(
		'{"mega1": {"user": "a", "pass": "b"}, "mega2": {"user": "c", "pass": "d"}}'
	)
	return path


@pytest.fixture
def config(tmp_path, accounts_file):
	config = megaunion.AppConfig()
	config.accounts.file = str(accounts_file)
	config.provision.state_dir = str(tmp_path / "state")
	config.provision.login_settle = 0
	config.provision.startup_grace = 0
	config.readiness.max_wait = 3
	config.readiness.interval = 0.01
	config.rclone.config_file = str(tmp_path / "rclone.conf")
	config.mount.mount_point = str(tmp_path / "main")
	config.privileges.enabled = False
	return config


@pytest.fixture
def fast_toml(tmp_path):
	"""Config file making `run` fast and self-contained under tmp_path."""
	path = tmp_path / "megaunion.toml"
	path.write_text(
		"[provision]\n"
		f'state_dir = "{tmp_path / "state"}"\n'
		"login_settle = 0\n"
		"startup_grace = 0\n"
		"[readiness]\n"
		"max_wait = 2\n"
		"interval = 0.01\n"
		"[rclone]\n"
		f'config_file = "{tmp_path / "rclone.conf"}"\n'
		"[mount]\n"
		f'mount_point = "{tmp_path / "main"}"\n'
	)
	return Path(path)
