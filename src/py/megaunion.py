#!/usr/bin/env python3
# --
# File: megaunion.py
#
# `megaunion` merges several MEGA accounts into one encrypted filesystem.
# Each account is logged in with MEGAcmd and served over WebDAV on its own
# local port, the WebDAV endpoints become rclone remotes, the remotes are
# merged with an rclone `union` remote, wrapped in a `crypt` remote and
# mounted with `rclone mount`.
#
# ## Usage
#
# >   megaunion [OPTIONS] [COMMAND] [ARGS...]
#
# ## Runtime Layout
#
# >   /app/accounts.json            - Credentials: {"NAME": {"user": .., "pass": ..}}
# >   /app/megaunion.toml           - Optional configuration
# >   /app/rclone.conf              - Generated rclone configuration
# >   /app/main                     - Mount point of the encrypted union
# >   /tmp/mega_NAME/               - Per-account MEGAcmd HOME
# >   /tmp/mega_webdav_NAME.log     - Per-account WebDAV server output

import argparse
import concurrent.futures
import dataclasses
import grp
import json
import os
import pwd
import shlex
import shutil
import signal
import subprocess
import sys
import threading
import time
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

# -----------------------------------------------------------------------------
#
# GLOBALS AND CONFIGURATION
#
# -----------------------------------------------------------------------------

MEGAUNION_VERSION = "1.0.0"
MEGAUNION_DEFAULT_CONFIG = "/app/megaunion.toml"
MEGAUNION_NO_COLOR = os.environ.get("MEGAUNION_NO_COLOR", "") == "1"

# Set in the environment of the re-executed, unprivileged process
MEGAUNION_PRIVILEGES_MARKER = "MEGAUNION_PRIVILEGES_DROPPED"

# Line printed by mega-webdav once it serves, e.g.
# "Serving via webdav /MyMegaFiles: http://127.0.0.1:8080/5l4RQYDS/MyMegaFiles"
READY_MARKER = "Serving via webdav"
URL_DELIMITER = ": "

DEFAULT_FOLDERS = {
	"mega1": "/MyMegaFiles",
	"mega2": "/AnotherMegaFolder",
}
DEFAULT_CRYPT_PASSWORD = "changeme"
DEFAULT_CRYPT_PASSWORD2 = "changeme2"
MOUNT_EXIT_TIMEOUT = 10.0

# Global runtime state
_verbose = False
_quiet = False
_no_color = MEGAUNION_NO_COLOR
_dry_run = False

# Provisioning threads log concurrently, signal handlers may re-enter
_log_lock = threading.RLock()

# -----------------------------------------------------------------------------
#
# TYPES
#
# -----------------------------------------------------------------------------


class MegaunionError(Exception):
	"""Base class for errors that abort a megaunion command."""

	pass


class ConfigNotFound(MegaunionError):
	"""Raised when the accounts file or an explicit config file is missing."""

	pass


class ConfigInvalid(MegaunionError):
	"""Raised when a config or accounts file cannot be parsed or has bad values."""

	pass


class SecretsMissing(MegaunionError):
	"""Raised when crypt secrets are required but not set."""

	pass


@dataclass
class AccountsConfig:
	"""Credentials file and MEGA folder selection."""

	file: str = "/app/accounts.json"
	folder_prefix: str = "/MyMegaFiles_"
	folders: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_FOLDERS))


@dataclass
class ProvisionConfig:
	"""MEGAcmd login and WebDAV server settings."""

	base_port: int = 8080
	max_parallel: int = 100
	state_dir: str = "/tmp"
	login_settle: float = 2.0
	startup_grace: float = 5.0
	login_cmd: str = "mega-login"
	mkdir_cmd: str = "mega-mkdir"
	webdav_cmd: str = "mega-webdav"


@dataclass
class ReadinessConfig:
	"""WebDAV readiness polling."""

	max_wait: int = 10
	interval: float = 1.0
	marker: str = READY_MARKER
	fallback_host: str = "127.0.0.1"


@dataclass
class RcloneConfig:
	"""rclone binary, generated config file and composed remote names."""

	command: str = "rclone"
	config_file: str = "/app/rclone.conf"
	union_name: str = "mega_union"
	crypt_name: str = "encrypted"


@dataclass
class CryptConfig:
	"""Secrets of the crypt remote."""

	password: str = ""
	password2: str = ""
	require_secrets: bool = False


@dataclass
class MountConfig:
	"""rclone mount settings."""

	enabled: bool = True
	mount_point: str = "/app/main"
	vfs_cache_mode: str = "full"
	allow_non_empty: bool = True


@dataclass
class PrivilegesConfig:
	"""Unprivileged user the tool re-executes itself as when started as root."""

	enabled: bool = True
	uid: Optional[int] = None
	gid: Optional[int] = None
	user: str = "megaunion"
	group: str = "megaunion"
	fuse_group: str = "fuse"
	chown_paths: list[str] = field(default_factory=lambda: ["/app"])


@dataclass
class AppConfig:
	"""Complete configuration."""

	accounts: AccountsConfig = field(default_factory=AccountsConfig)
	provision: ProvisionConfig = field(default_factory=ProvisionConfig)
	readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
	rclone: RcloneConfig = field(default_factory=RcloneConfig)
	crypt: CryptConfig = field(default_factory=CryptConfig)
	mount: MountConfig = field(default_factory=MountConfig)
	privileges: PrivilegesConfig = field(default_factory=PrivilegesConfig)


@dataclass
class Credentials:
	"""One entry of the accounts file."""

	name: str
	user: str
	password: str


@dataclass
class Account:
	"""A provisioned MEGA account."""

	name: str
	user: str
	password: str
	port: int
	folder: str
	home: Path  # MEGAcmd HOME, isolated per account
	log_path: Path  # mega-webdav output


@dataclass
class ServeProcess:
	"""Background mega-webdav server of an account."""

	account: Account
	process: Optional[subprocess.Popen]  # None in dry-run or when launch failed
	log_path: Path


@dataclass(frozen=True)
class ResolvedURL:
	"""WebDAV URL of an account, extracted from its log or a fallback."""

	account_name: str
	url: str
	ready: bool


@dataclass(frozen=True)
class RemoteBlock:
	"""rclone webdav remote section for one account."""

	name: str
	url: str


# -----------------------------------------------------------------------------
#
# UTILITIES
#
# -----------------------------------------------------------------------------

# =============================================================================
# Logging
# =============================================================================


# Function: megaunion_util_log LEVEL MESSAGE
# Log message respecting verbose/quiet settings.
def megaunion_util_log(level: str, msg: str) -> None:
	"""Log message respecting verbose/quiet settings."""
	levels = {"debug": 0, "info": 1, "warn": 2, "error": 3}
	level_num = levels.get(level, 1)
	if _quiet and level_num < 2:
		return
	if level == "debug" and not _verbose:
		return
	prefix = {"debug": "DBG", "info": "---", "warn": "WRN", "error": "ERR"}.get(
		level, "---"
	)
	color = {"debug": "dim", "info": "", "warn": "yellow", "error": "red"}.get(
		level, ""
	)
	line = f"{prefix} {msg}"
	if color:
		line = megaunion_util_color(line, color)
	with _log_lock:
		print(
			line, file=sys.stderr if level == "error" else sys.stdout, flush=True
		)


# =============================================================================
# Colors
# =============================================================================


# Function: megaunion_util_color TEXT COLOR
# Colorize text if colors enabled.
def megaunion_util_color(text: str, color: str) -> str:
	"""Colorize text if colors enabled."""
	if _no_color or not sys.stdout.isatty():
		return text
	codes = {
		"red": "\033[31m",
		"yellow": "\033[33m",
		"dim": "\033[2m",
		"reset": "\033[0m",
	}
	return f"{codes.get(color, '')}{text}{codes['reset']}"


# =============================================================================
# Subprocess
# =============================================================================


# Function: megaunion_util_format_cmd CMD SECRETS
# Format a command line for logging, masking secret arguments.
def megaunion_util_format_cmd(cmd: list[str], secrets: tuple[str, ...] = ()) -> str:
	"""Return a shell-quoted command line with secrets replaced by ****."""
	masked = [("****" if arg and arg in secrets else arg) for arg in cmd]
	return shlex.join(masked)


# Function: megaunion_util_run CMD TIMEOUT ENV
# Run command, return (code, stdout, stderr).
def megaunion_util_run(
	cmd: list[str],
	timeout: Optional[float] = None,
	env: Optional[dict] = None,
	capture: bool = True,
	secrets: tuple[str, ...] = (),
) -> tuple[int, str, str]:
	"""Run command, return (code, stdout, stderr).

	Missing binaries map to 127 and timeouts to -1. Nothing is raised: the
	caller decides whether a failure matters.
	"""
	if _dry_run:
		megaunion_util_log(
			"info", f"[dry-run] Would run: {megaunion_util_format_cmd(cmd, secrets)}"
		)
		return 0, "", ""
	megaunion_util_log("debug", f"Running: {megaunion_util_format_cmd(cmd, secrets)}")
	try:
		result = subprocess.run(
			cmd,
			capture_output=capture,
			text=True,
			timeout=timeout,
			env=env if env else None,
		)
		return result.returncode, result.stdout or "", result.stderr or ""
	except subprocess.TimeoutExpired:
		return -1, "", "Command timed out"
	except FileNotFoundError:
		return 127, "", f"Command not found: {cmd[0]}"
	except Exception as e:
		return 1, "", str(e)


# Function: megaunion_util_spawn CMD LOG_PATH ENV
# Start a long-running background process.
def megaunion_util_spawn(
	cmd: list[str],
	log_path: Optional[Path] = None,
	env: Optional[dict] = None,
) -> Optional[subprocess.Popen]:
	"""Start CMD in the background and return its handle.

	With LOG_PATH, stdout and stderr go to that (truncated) file, otherwise
	they are inherited. The process is never waited for here. Returns None
	in dry-run mode and when the process could not be started.
	"""
	if _dry_run:
		megaunion_util_log(
			"info", f"[dry-run] Would start: {megaunion_util_format_cmd(cmd)}"
		)
		return None
	megaunion_util_log("debug", f"Starting: {megaunion_util_format_cmd(cmd)}")
	try:
		if log_path is None:
			return subprocess.Popen(cmd, env=env if env else None)
		log_path.parent.mkdir(parents=True, exist_ok=True)
		with open(log_path, "wb") as log:
			return subprocess.Popen(
				cmd,
				stdin=subprocess.DEVNULL,
				stdout=log,
				stderr=subprocess.STDOUT,
				env=env if env else None,
			)
	except FileNotFoundError:
		megaunion_util_log("error", f"Command not found: {cmd[0]}")
	except OSError as e:
		megaunion_util_log("error", f"Failed to start {cmd[0]}: {e}")
	return None


# -----------------------------------------------------------------------------
#
# CONFIG
#
# -----------------------------------------------------------------------------


# Function: megaunion_config_load PATH
# Load and merge config: defaults + TOML file + env vars.
def megaunion_config_load(path: Optional[str] = None) -> AppConfig:
	"""Load configuration.

	An explicit PATH (or MEGAUNION_CONFIG) must exist, the default
	/app/megaunion.toml is optional.
	"""
	config = AppConfig()
	explicit = path or os.environ.get("MEGAUNION_CONFIG", "")
	conf_path = Path(explicit or MEGAUNION_DEFAULT_CONFIG)

	if conf_path.exists():
		try:
			with open(conf_path, "rb") as f:
				data = tomllib.load(f)
		except (tomllib.TOMLDecodeError, OSError) as e:
			raise ConfigInvalid(f"Failed to load {conf_path}: {e}") from e
		config = megaunion_config_from_dict(data, config)
	elif explicit:
		raise ConfigNotFound(f"Config file not found: {conf_path}")

	return megaunion_config_from_env(config)


def _megaunion_config_coerce(where: str, current: Any, value: Any) -> Any:
	"""Check VALUE against the type of the default CURRENT."""
	if isinstance(value, bool) and not isinstance(current, bool):
		raise ConfigInvalid(f"{where}: expected {type(current).__name__}, got bool")
	if current is None or (isinstance(current, int) and not isinstance(current, bool)):
		if isinstance(value, int):
			return value
		raise ConfigInvalid(f"{where}: expected an integer, got {value!r}")
	if isinstance(current, bool):
		if isinstance(value, bool):
			return value
		raise ConfigInvalid(f"{where}: expected true/false, got {value!r}")
	if isinstance(current, float):
		if isinstance(value, (int, float)):
			return float(value)
		raise ConfigInvalid(f"{where}: expected a number, got {value!r}")
	if isinstance(current, str):
		if isinstance(value, str):
			return value
		raise ConfigInvalid(f"{where}: expected a string, got {value!r}")
	if isinstance(current, list):
		if isinstance(value, list):
			return [str(v) for v in value]
		raise ConfigInvalid(f"{where}: expected a list, got {value!r}")
	if isinstance(current, dict):
		if isinstance(value, dict):
			return {str(k): str(v) for k, v in value.items()}
		raise ConfigInvalid(f"{where}: expected a table, got {value!r}")
	return value


# Function: megaunion_config_from_dict DATA CONFIG
# Apply TOML data to config object.
def megaunion_config_from_dict(data: dict, config: AppConfig) -> AppConfig:
	"""Apply dictionary data to config object.

	Sections map to the AppConfig fields. A top-level [folders] table
	extends the folder overrides instead of replacing them.
	"""
	sections = {f.name for f in dataclasses.fields(config)}
	for section, values in data.items():
		if section == "folders":
			config.accounts.folders.update(
				_megaunion_config_coerce("folders", {}, values)
			)
			continue
		if section not in sections:
			megaunion_util_log("warn", f"Ignoring unknown config section: [{section}]")
			continue
		if not isinstance(values, dict):
			raise ConfigInvalid(f"[{section}]: expected a table")
		target = getattr(config, section)
		known = {f.name for f in dataclasses.fields(target)}
		for key, value in values.items():
			if key not in known:
				megaunion_util_log("warn", f"Ignoring unknown config key: {section}.{key}")
				continue
			setattr(
				target,
				key,
				_megaunion_config_coerce(f"{section}.{key}", getattr(target, key), value),
			)
	return config


def _megaunion_env_int(name: str, value: str) -> int:
	try:
		return int(value)
	except ValueError:
		raise ConfigInvalid(f"{name}: expected an integer, got {value!r}") from None


# Function: megaunion_config_from_env CONFIG ENVIRON
# Apply PUID/PGID, CRYPTO_PASSWORD* and MEGAUNION_* overrides.
def megaunion_config_from_env(
	config: AppConfig, environ: Optional[dict[str, str]] = None
) -> AppConfig:
	"""Apply environment variable overrides to config."""
	env = os.environ if environ is None else environ

	if env.get("PUID"):
		config.privileges.uid = _megaunion_env_int("PUID", env["PUID"])
	if env.get("PGID"):
		config.privileges.gid = _megaunion_env_int("PGID", env["PGID"])
	if env.get("CRYPTO_PASSWORD"):
		config.crypt.password = env["CRYPTO_PASSWORD"]
	if env.get("CRYPTO_PASSWORD2"):
		config.crypt.password2 = env["CRYPTO_PASSWORD2"]

	for key, value in env.items():
		if not key.startswith("MEGAUNION_") or not value:
			continue
		config_key = key[len("MEGAUNION_") :].lower()
		if config_key == "accounts_file":
			config.accounts.file = value
		elif config_key == "rclone_config":
			config.rclone.config_file = value
		elif config_key == "mount_point":
			config.mount.mount_point = value
		elif config_key == "state_dir":
			config.provision.state_dir = value
		elif config_key == "base_port":
			config.provision.base_port = _megaunion_env_int(key, value)
		elif config_key == "max_parallel":
			config.provision.max_parallel = _megaunion_env_int(key, value)
		elif config_key == "wait":
			config.readiness.max_wait = _megaunion_env_int(key, value)
		elif config_key == "require_secrets":
			config.crypt.require_secrets = value.lower() in ("1", "true", "yes")
	return config


# Function: megaunion_config_apply_CLI_overrides ARGS CONFIG
# Apply CLI argument overrides to config.
def megaunion_config_apply_CLI_overrides(
	args: argparse.Namespace, config: AppConfig
) -> AppConfig:
	"""Apply CLI argument overrides to config."""
	if getattr(args, "accounts", None):
		config.accounts.file = args.accounts
	if getattr(args, "mount_point", None):
		config.mount.mount_point = args.mount_point
	if getattr(args, "rclone_config", None):
		config.rclone.config_file = args.rclone_config
	if getattr(args, "base_port", None) is not None:
		config.provision.base_port = args.base_port
	if getattr(args, "max_parallel", None) is not None:
		config.provision.max_parallel = args.max_parallel
	if getattr(args, "require_secrets", False):
		config.crypt.require_secrets = True
	if getattr(args, "no_mount", False):
		config.mount.enabled = False
	if getattr(args, "no_drop_privileges", False):
		config.privileges.enabled = False
	return config


# -----------------------------------------------------------------------------
#
# ACCOUNTS
#
# -----------------------------------------------------------------------------


# Function: megaunion_accounts_load PATH
# Read the accounts JSON file, preserving key order.
def megaunion_accounts_load(path: str) -> list[Credentials]:
	"""Load credentials from the accounts file.

	Missing `user`/`pass` fields become empty strings; bad credentials only
	show up later as mega-login failures.
	"""
	accounts_path = Path(path)
	if not accounts_path.is_file():
		raise ConfigNotFound(f"Accounts file not found: {accounts_path}")
	try:
		data = json.loads(accounts_path.read_text())
	except (json.JSONDecodeError, UnicodeDecodeError) as e:
		raise ConfigInvalid(f"Failed to parse {accounts_path}: {e}") from e
	if not isinstance(data, dict):
		raise ConfigInvalid(f"{accounts_path}: expected a JSON object of accounts")

	credentials = []
	for name, entry in data.items():
		if not isinstance(entry, dict):
			entry = {}
		user = entry.get("user")
		password = entry.get("pass")
		credentials.append(
			Credentials(
				name=name,
				user="" if user is None else str(user),
				password="" if password is None else str(password),
			)
		)
	return credentials


# Function: megaunion_accounts_folder NAME CONFIG
# Resolve the MEGA folder served for an account.
def megaunion_accounts_folder(name: str, config: AccountsConfig) -> str:
	"""Return the override folder for NAME, or PREFIX + NAME."""
	if name in config.folders:
		return config.folders[name]
	return f"{config.folder_prefix}{name}"


# Function: megaunion_accounts_plan CREDENTIALS CONFIG
# Assign ports, folders, HOME and log paths.
def megaunion_accounts_plan(
	credentials: list[Credentials], config: AppConfig
) -> list[Account]:
	"""Account at position i gets port base_port + i."""
	state_dir = Path(config.provision.state_dir)
	accounts = []
	for i, cred in enumerate(credentials):
		accounts.append(
			Account(
				name=cred.name,
				user=cred.user,
				password=cred.password,
				port=config.provision.base_port + i,
				folder=megaunion_accounts_folder(cred.name, config.accounts),
				home=state_dir / f"mega_{cred.name}",
				log_path=state_dir / f"mega_webdav_{cred.name}.log",
			)
		)
	return accounts


# -----------------------------------------------------------------------------
#
# PRIVILEGES
#
# -----------------------------------------------------------------------------


# Function: megaunion_privileges_should_drop CONFIG ENVIRON
# Root, PUID and PGID set, and not re-executed yet.
def megaunion_privileges_should_drop(
	config: PrivilegesConfig, environ: Optional[dict[str, str]] = None
) -> bool:
	"""Tell whether this process has to re-execute itself unprivileged."""
	env = os.environ if environ is None else environ
	if not config.enabled:
		return False
	if config.uid is None or config.gid is None:
		return False
	if env.get(MEGAUNION_PRIVILEGES_MARKER) == "1":
		return False
	return os.geteuid() == 0


# Function: megaunion_privileges_ensure_group GID NAME
# Return the name of group GID, creating it if needed.
def megaunion_privileges_ensure_group(gid: int, name: str) -> str:
	try:
		return grp.getgrgid(gid).gr_name
	except KeyError:
		pass
	megaunion_util_log("info", f"Creating group {name} (gid {gid})")
	code, _, stderr = megaunion_util_run(["groupadd", "-g", str(gid), name])
	if code != 0:
		megaunion_util_log("warn", f"groupadd {name} failed: {stderr.strip()}")
	return name


# Function: megaunion_privileges_ensure_user UID GID NAME
# Return the name of user UID, creating it if needed.
def megaunion_privileges_ensure_user(uid: int, gid: int, name: str) -> str:
	try:
		return pwd.getpwuid(uid).pw_name
	except KeyError:
		pass
	megaunion_util_log("info", f"Creating user {name} (uid {uid}, gid {gid})")
	code, _, stderr = megaunion_util_run(
		["useradd", "-u", str(uid), "-g", str(gid), "-M", "-s", "/usr/sbin/nologin", name]
	)
	if code != 0:
		megaunion_util_log("warn", f"useradd {name} failed: {stderr.strip()}")
	return name


# Function: megaunion_privileges_ensure_member USER GROUP
# Make sure USER belongs to GROUP (the group owning /dev/fuse).
def megaunion_privileges_ensure_member(user: str, group: str) -> None:
	try:
		members = grp.getgrnam(group).gr_mem
	except KeyError:
		megaunion_util_log("info", f"Creating system group {group}")
		code, _, stderr = megaunion_util_run(["groupadd", "-r", group])
		if code != 0:
			megaunion_util_log("warn", f"groupadd {group} failed: {stderr.strip()}")
		members = []
	if user in members:
		return
	code, _, stderr = megaunion_util_run(["usermod", "-aG", group, user])
	if code != 0:
		megaunion_util_log("warn", f"Adding {user} to {group} failed: {stderr.strip()}")


# Function: megaunion_privileges_chown PATHS UID GID EXCLUDE
# Recursively chown PATHS, skipping EXCLUDE. Returns the failure count.
def megaunion_privileges_chown(
	paths: list[str], uid: int, gid: int, exclude: tuple[Path, ...] = ()
) -> int:
	"""Change ownership of every entry below PATHS.

	Failures are logged and counted, never raised: the mount may still work
	with the default ownership.
	"""
	skipped = {p.resolve() for p in exclude}
	failures = 0

	def chown_one(path: Path) -> None:
		nonlocal failures
		if path.resolve() in skipped:
			megaunion_util_log("debug", f"Not changing ownership of {path}")
			return
		try:
			os.chown(path, uid, gid, follow_symlinks=False)
		except OSError as e:
			failures += 1
			megaunion_util_log("warn", f"Failed to change ownership of {path}: {e}")

	for root_str in paths:
		root = Path(root_str)
		if not root.exists():
			continue
		chown_one(root)
		if not root.is_dir():
			continue
		for dirpath, dirnames, filenames in os.walk(root):
			for name in dirnames + filenames:
				chown_one(Path(dirpath) / name)
	return failures


# Function: megaunion_privileges_drop CONFIG ARGV
# Re-execute the program as PUID:PGID, at most once per process tree.
def megaunion_privileges_drop(config: AppConfig, argv: list[str]) -> bool:
	"""Drop root privileges by re-executing as the configured user.

	Returns False when nothing has to be done. On success the call does not
	return: the process image is replaced.
	"""
	priv = config.privileges
	if not megaunion_privileges_should_drop(priv):
		return False
	uid, gid = priv.uid, priv.gid

	if _dry_run:
		megaunion_util_log(
			"info", f"[dry-run] Would re-execute as {uid}:{gid}: {shlex.join(argv)}"
		)
		return False

	megaunion_util_log("info", f"Dropping privileges to {uid}:{gid}")
	group = megaunion_privileges_ensure_group(gid, priv.group)
	user = megaunion_privileges_ensure_user(uid, gid, priv.user)
	if priv.fuse_group:
		megaunion_privileges_ensure_member(user, priv.fuse_group)

	# The accounts file is usually bind-mounted read-only
	failures = megaunion_privileges_chown(
		priv.chown_paths, uid, gid, exclude=(Path(config.accounts.file),)
	)
	if failures:
		megaunion_util_log(
			"warn", f"{failures} ownership change(s) failed, continuing anyway"
		)

	env = os.environ.copy()
	env[MEGAUNION_PRIVILEGES_MARKER] = "1"
	try:
		env["HOME"] = pwd.getpwuid(uid).pw_dir
	except KeyError:
		pass

	megaunion_util_log("debug", f"Re-executing as {user}:{group}")
	os.initgroups(user, gid)
	os.setgid(gid)
	os.setuid(uid)
	os.execvpe(sys.executable, [sys.executable] + argv, env)
	return True


# -----------------------------------------------------------------------------
#
# PROVISIONING
#
# -----------------------------------------------------------------------------


# Function: megaunion_provision_account ACCOUNT CONFIG
# Login, create the folder and start mega-webdav for one account.
def megaunion_provision_account(account: Account, config: AppConfig) -> ServeProcess:
	"""Run the launch phase of one account.

	The WebDAV server is left running in the background.
	"""
	prov = config.provision
	tag = f"[{account.name}]"
	megaunion_util_log(
		"info", f"{tag} Setting up account (user: {account.user}, port: {account.port})"
	)

	env = os.environ.copy()
	env["HOME"] = str(account.home)
	if not _dry_run:
		account.home.mkdir(parents=True, exist_ok=True)

	megaunion_util_log("info", f"{tag} Logging into MEGA...")
	code, _, stderr = megaunion_util_run(
		[prov.login_cmd, account.user, account.password],
		env=env,
		secrets=(account.password,),
	)
	if code != 0:
		megaunion_util_log(
			"warn", f"{tag} mega-login exited with {code}: {stderr.strip()}"
		)
	if prov.login_settle > 0 and not _dry_run:
		time.sleep(prov.login_settle)

	megaunion_util_log("info", f"{tag} Creating folder {account.folder} (if missing)")
	code, _, _ = megaunion_util_run([prov.mkdir_cmd, account.folder], env=env)
	if code != 0:
		megaunion_util_log("debug", f"{tag} mega-mkdir exited with {code} (folder exists?)")

	megaunion_util_log(
		"info", f"{tag} Starting WebDAV on port {account.port} serving {account.folder}"
	)
	process = megaunion_util_spawn(
		[prov.webdav_cmd, account.folder, f"--port={account.port}", "--public"],
		log_path=account.log_path,
		env=env,
	)
	return ServeProcess(account=account, process=process, log_path=account.log_path)


# Function: megaunion_provision_all ACCOUNTS CONFIG
# Provision accounts concurrently, up to max_parallel at a time.
def megaunion_provision_all(
	accounts: list[Account], config: AppConfig
) -> dict[str, ServeProcess]:
	"""Provision every account and wait for all launch phases.

	Returns the serve processes keyed by account name, in account order. An
	account whose launch raised still gets an entry, without a process.
	"""
	if not accounts:
		return {}
	workers = max(1, min(config.provision.max_parallel, len(accounts)))
	serves: dict[str, ServeProcess] = {}
	with concurrent.futures.ThreadPoolExecutor(
		max_workers=workers, thread_name_prefix="provision"
	) as pool:
		futures = [
			(account, pool.submit(megaunion_provision_account, account, config))
			for account in accounts
		]
		for account, future in futures:
			try:
				serves[account.name] = future.result()
			except Exception as e:
				megaunion_util_log("error", f"[{account.name}] Provisioning failed: {e}")
				serves[account.name] = ServeProcess(
					account=account, process=None, log_path=account.log_path
				)
	return serves


# -----------------------------------------------------------------------------
#
# READINESS
#
# -----------------------------------------------------------------------------


# Function: megaunion_readiness_extract_url LINE
# "Serving via webdav /X: http://..." -> "http://..."
def megaunion_readiness_extract_url(line: str) -> str:
	"""Return the second ': '-separated field of LINE without whitespace."""
	fields = line.split(URL_DELIMITER)
	if len(fields) < 2:
		return ""
	return "".join(fields[1].split())


# Function: megaunion_readiness_scan LOG_PATH MARKER
# First log line containing MARKER, or None.
def megaunion_readiness_scan(log_path: Path, marker: str) -> Optional[str]:
	try:
		content = log_path.read_text(errors="replace")
	except OSError:
		return None
	for line in content.splitlines():
		if marker in line:
			return line
	return None


# Function: megaunion_readiness_wait LOG_PATH CONFIG CANCEL
# Poll a log file for the ready marker and extract the URL.
def megaunion_readiness_wait(
	log_path: Path,
	config: ReadinessConfig,
	cancel: Optional[threading.Event] = None,
) -> str:
	"""Wait up to max_wait checks, interval seconds apart, for the marker.

	Returns the extracted URL, or "" when the marker never shows up. Setting
	CANCEL interrupts the wait.
	"""
	cancel = cancel or threading.Event()
	for _ in range(config.max_wait):
		if megaunion_readiness_scan(log_path, config.marker) is not None:
			break
		if cancel.wait(config.interval):
			break
	line = megaunion_readiness_scan(log_path, config.marker)
	return megaunion_readiness_extract_url(line) if line else ""


# Function: megaunion_readiness_fallback_url HOST PORT
def megaunion_readiness_fallback_url(host: str, port: int) -> str:
	return f"http://{host}:{port}"


# Function: megaunion_readiness_resolve SERVE CONFIG CANCEL
# Resolve the URL of one account, falling back to the loopback port.
def megaunion_readiness_resolve(
	serve: ServeProcess,
	config: ReadinessConfig,
	cancel: Optional[threading.Event] = None,
) -> ResolvedURL:
	account = serve.account
	fallback = megaunion_readiness_fallback_url(config.fallback_host, account.port)
	if _dry_run:
		return ResolvedURL(account_name=account.name, url=fallback, ready=False)

	url = megaunion_readiness_wait(serve.log_path, config, cancel)
	if not url:
		megaunion_util_log(
			"warn",
			f"[{account.name}] Failed to extract URL from webdav output, "
			f"using fallback URL: {fallback}",
		)
		return ResolvedURL(account_name=account.name, url=fallback, ready=False)
	megaunion_util_log("info", f"[{account.name}] Extracted WebDAV URL: {url}")
	return ResolvedURL(account_name=account.name, url=url, ready=True)


# Function: megaunion_readiness_resolve_all SERVES CONFIG CANCEL
# Resolve every account's URL concurrently, keeping account order.
def megaunion_readiness_resolve_all(
	serves: list[ServeProcess],
	config: AppConfig,
	cancel: Optional[threading.Event] = None,
) -> list[ResolvedURL]:
	if not serves:
		return []
	workers = max(1, min(config.provision.max_parallel, len(serves)))
	with concurrent.futures.ThreadPoolExecutor(
		max_workers=workers, thread_name_prefix="readiness"
	) as pool:
		return list(
			pool.map(
				lambda serve: megaunion_readiness_resolve(serve, config.readiness, cancel),
				serves,
			)
		)


# -----------------------------------------------------------------------------
#
# RCLONE CONFIG
#
# -----------------------------------------------------------------------------


# Function: megaunion_rclone_render_block BLOCK
# Render one webdav remote section.
def megaunion_rclone_render_block(block: RemoteBlock) -> str:
	return (
		f"\n[{block.name}]\n"
		"type = webdav\n"
		f"url = {block.url}\n"
		"vendor = other\n"
		"user = anonymous\n"
		"pass =\n"
	)


# Function: megaunion_rclone_render BLOCKS
# Render the per-account rclone configuration document.
def megaunion_rclone_render(blocks: list[RemoteBlock]) -> str:
	"""Concatenate the blocks in order. Same blocks, same bytes."""
	return "".join(megaunion_rclone_render_block(b) for b in blocks) + "\n"


# Function: megaunion_rclone_write BLOCKS PATH
# Write the rclone configuration, replacing any previous content.
def megaunion_rclone_write(blocks: list[RemoteBlock], path: str) -> Path:
	config_path = Path(path)
	if _dry_run:
		megaunion_util_log("info", f"[dry-run] Would write rclone configuration to {path}")
		return config_path
	megaunion_util_log("info", f"Writing rclone configuration to {config_path}")
	config_path.parent.mkdir(parents=True, exist_ok=True)
	config_path.write_text(megaunion_rclone_render(blocks))
	return config_path


# -----------------------------------------------------------------------------
#
# REMOTE COMPOSITION
#
# -----------------------------------------------------------------------------


# Function: megaunion_compose_upstreams NAMES
# "mega1: mega2:" for the union remote.
def megaunion_compose_upstreams(names: list[str]) -> str:
	return " ".join(f"{name}:" for name in names)


# Function: megaunion_compose_union NAMES CONFIG
# Create the union remote over every account remote.
def megaunion_compose_union(names: list[str], config: AppConfig) -> int:
	rc = config.rclone
	upstreams = megaunion_compose_upstreams(names)
	megaunion_util_log(
		"info", f"Creating union remote '{rc.union_name}' with upstreams: {upstreams}"
	)
	code, _, stderr = megaunion_util_run(
		[
			rc.command,
			"config",
			"create",
			rc.union_name,
			"union",
			"upstreams",
			upstreams,
			"--config",
			rc.config_file,
		]
	)
	if code != 0:
		megaunion_util_log("error", f"Failed to create union remote: {stderr.strip()}")
	return code


# Function: megaunion_crypt_secrets CONFIG
# Return the crypt secrets, warning about (or refusing) the defaults.
def megaunion_crypt_secrets(config: CryptConfig) -> tuple[str, str]:
	"""Return (password, password2).

	Unset secrets fall back to well-known defaults, which makes the
	encryption key predictable. With require_secrets the fallback is
	refused instead.
	"""
	missing = []
	if not config.password:
		missing.append("CRYPTO_PASSWORD")
	if not config.password2:
		missing.append("CRYPTO_PASSWORD2")
	if missing and config.require_secrets:
		raise SecretsMissing(f"Crypt secrets not set: {', '.join(missing)}")
	for name in missing:
		megaunion_util_log(
			"warn", f"{name} not set, using the insecure default (change it!)"
		)
	return (
		config.password or DEFAULT_CRYPT_PASSWORD,
		config.password2 or DEFAULT_CRYPT_PASSWORD2,
	)


# Function: megaunion_compose_obscure SECRET CONFIG
# Obscure a secret with `rclone obscure`.
def megaunion_compose_obscure(secret: str, config: RcloneConfig) -> Optional[str]:
	"""Return the obscured SECRET, or None when rclone fails."""
	code, stdout, stderr = megaunion_util_run(
		[config.command, "obscure", secret], secrets=(secret,)
	)
	if code != 0:
		megaunion_util_log("error", f"rclone obscure failed: {stderr.strip()}")
		return None
	return stdout.strip()


# Function: megaunion_compose_crypt CONFIG SECRETS
# Create the crypt remote on top of the union remote.
def megaunion_compose_crypt(config: AppConfig, secrets: tuple[str, str]) -> int:
	rc = config.rclone
	megaunion_util_log(
		"info", f"Creating crypt remote '{rc.crypt_name}' on top of '{rc.union_name}'"
	)
	obscured = []
	for secret in secrets:
		value = megaunion_compose_obscure(secret, rc)
		if value is None:
			return 1
		obscured.append(value)
	code, _, stderr = megaunion_util_run(
		[
			rc.command,
			"config",
			"create",
			rc.crypt_name,
			"crypt",
			"remote",
			f"{rc.union_name}:",
			"password",
			obscured[0],
			"password2",
			obscured[1],
			"--no-obscure",
			"--config",
			rc.config_file,
		],
		secrets=tuple(v for v in obscured if v),
	)
	if code != 0:
		megaunion_util_log("error", f"Failed to create crypt remote: {stderr.strip()}")
	return code


# -----------------------------------------------------------------------------
#
# MOUNT
#
# -----------------------------------------------------------------------------


# Function: megaunion_mount_cmd CONFIG
def megaunion_mount_cmd(config: AppConfig) -> list[str]:
	cmd = [
		config.rclone.command,
		"mount",
		f"{config.rclone.crypt_name}:",
		config.mount.mount_point,
		"--config",
		config.rclone.config_file,
		"--vfs-cache-mode",
		config.mount.vfs_cache_mode,
	]
	if config.mount.allow_non_empty:
		cmd.append("--allow-non-empty")
	return cmd


# Function: megaunion_mount_start CONFIG
# Start `rclone mount` in the background.
def megaunion_mount_start(config: AppConfig) -> Optional[subprocess.Popen]:
	mount_point = Path(config.mount.mount_point)
	megaunion_util_log(
		"info", f"Mounting crypt remote '{config.rclone.crypt_name}' to {mount_point}"
	)
	if not _dry_run:
		mount_point.mkdir(parents=True, exist_ok=True)
	return megaunion_util_spawn(megaunion_mount_cmd(config))


# Function: megaunion_mount_unmount MOUNT_POINT
# Unmount with fusermount, falling back to umount.
def megaunion_mount_unmount(mount_point: str) -> bool:
	"""Unmount MOUNT_POINT. Returns True on success."""
	fusermount = shutil.which("fusermount") or shutil.which("fusermount3")
	if fusermount:
		code, _, stderr = megaunion_util_run([fusermount, "-u", mount_point])
		if code == 0:
			return True
		megaunion_util_log("debug", f"fusermount failed: {stderr.strip()}")
	code, _, stderr = megaunion_util_run(["umount", mount_point])
	if code != 0:
		megaunion_util_log("error", f"Failed to unmount {mount_point}: {stderr.strip()}")
		return False
	return True


# Function: megaunion_mount_supervise CONFIG STOP
# Park until STOP is set, then unmount.
def megaunion_mount_supervise(
	config: AppConfig,
	stop: threading.Event,
	process: Optional[subprocess.Popen] = None,
) -> int:
	"""Wait for a termination signal, unmount and reap PROCESS.

	Always returns 0. A mount process that does not exit after the unmount
	is terminated.
	"""
	mount_point = config.mount.mount_point
	megaunion_util_log(
		"info", f"Setup complete. The encrypted union mount is available at {mount_point}."
	)
	megaunion_util_log("info", "Press Ctrl+C to stop.")
	while not stop.wait(1.0):
		pass

	megaunion_util_log("info", f"Caught termination signal. Unmounting {mount_point}...")
	if megaunion_mount_unmount(mount_point):
		megaunion_util_log("info", f"Unmounted {mount_point}. Exiting.")
	else:
		megaunion_util_log("warn", f"{mount_point} may still be mounted. Exiting.")
	if process is not None:
		try:
			process.wait(timeout=MOUNT_EXIT_TIMEOUT)
		except subprocess.TimeoutExpired:
			megaunion_util_log("warn", "rclone mount did not exit, terminating it")
			process.terminate()
			try:
				process.wait(timeout=MOUNT_EXIT_TIMEOUT)
			except subprocess.TimeoutExpired:
				process.kill()
				process.wait()
	return 0


# -----------------------------------------------------------------------------
#
# PIPELINE
#
# -----------------------------------------------------------------------------


# Function: megaunion_pipeline_run CONFIG ACCOUNTS SECRETS STOP
# Provision, resolve, write config, compose remotes, mount.
def megaunion_pipeline_run(
	config: AppConfig,
	accounts: list[Account],
	secrets: tuple[str, str],
	stop: threading.Event,
) -> int:
	"""Run the whole setup. STOP is set by the signal handlers."""
	serves = megaunion_provision_all(accounts, config)
	resolved = megaunion_readiness_resolve_all(list(serves.values()), config, stop)

	if config.provision.startup_grace > 0 and not _dry_run and not stop.is_set():
		megaunion_util_log("info", "Waiting for WebDAV servers to fully start...")
		stop.wait(config.provision.startup_grace)
	if stop.is_set():
		megaunion_util_log("info", "Caught termination signal during setup. Exiting.")
		return 0

	blocks = [RemoteBlock(name=r.account_name, url=r.url) for r in resolved]
	megaunion_rclone_write(blocks, config.rclone.config_file)

	names = [account.name for account in accounts]
	megaunion_compose_union(names, config)
	megaunion_compose_crypt(config, secrets)

	if not config.mount.enabled:
		megaunion_util_log("info", "Mounting disabled, exiting.")
		return 0

	if stop.is_set():
		megaunion_util_log("info", "Caught termination signal, not mounting. Exiting.")
		return 0
	mount = megaunion_mount_start(config)
	if _dry_run:
		return 0
	if mount is None:
		megaunion_util_log("error", "rclone mount could not be started")
		return 1
	return megaunion_mount_supervise(config, stop, mount)


# -----------------------------------------------------------------------------
#
# COMMANDS
#
# -----------------------------------------------------------------------------


# Function: megaunion_cmd_load_config ARGS
def megaunion_cmd_load_config(args: argparse.Namespace) -> AppConfig:
	config = megaunion_config_load(getattr(args, "config", None))
	return megaunion_config_apply_CLI_overrides(args, config)


# Function: megaunion_cmd_run ARGS
# Run the full setup and stay up until terminated.
def megaunion_cmd_run(args: argparse.Namespace) -> int:
	"""Drop privileges, provision accounts, compose remotes and mount."""
	config = megaunion_cmd_load_config(args)
	megaunion_privileges_drop(config, sys.argv)

	megaunion_util_log("info", f"Reading accounts from {config.accounts.file}")
	credentials = megaunion_accounts_load(config.accounts.file)
	if not credentials:
		megaunion_util_log("warn", "No accounts defined, the union will be empty")
	secrets = megaunion_crypt_secrets(config.crypt)
	accounts = megaunion_accounts_plan(credentials, config)

	stop = threading.Event()

	# Only set the event: the handler runs on the main thread, which may
	# be holding the log lock.
	def handle_signal(signum: int, frame: object) -> None:
		stop.set()

	original_sigint = signal.signal(signal.SIGINT, handle_signal)
	original_sigterm = signal.signal(signal.SIGTERM, handle_signal)
	try:
		return megaunion_pipeline_run(config, accounts, secrets, stop)
	finally:
		signal.signal(signal.SIGINT, original_sigint)
		signal.signal(signal.SIGTERM, original_sigterm)


# Function: megaunion_cmd_plan ARGS
# Show ports, folders and paths without side effects.
def megaunion_cmd_plan(args: argparse.Namespace) -> int:
	config = megaunion_cmd_load_config(args)
	accounts = megaunion_accounts_plan(
		megaunion_accounts_load(config.accounts.file), config
	)

	if getattr(args, "format", "text") == "json":
		data = [
			{
				"name": a.name,
				"user": a.user,
				"port": a.port,
				"folder": a.folder,
				"home": str(a.home),
				"log": str(a.log_path),
			}
			for a in accounts
		]
		print(json.dumps(data, indent=2))
		return 0

	if not accounts:
		print("No accounts defined")
		return 0
	print(f"{'ACCOUNT':<16} {'PORT':<6} {'FOLDER':<28} USER")
	for a in accounts:
		print(f"{a.name:<16} {a.port:<6} {a.folder:<28} {a.user}")
	print()
	print(f"rclone config: {config.rclone.config_file}")
	print(f"union remote:  {config.rclone.union_name}")
	print(f"crypt remote:  {config.rclone.crypt_name}")
	print(f"mount point:   {config.mount.mount_point}")
	return 0


# Function: megaunion_cmd_render ARGS
# Print the per-account rclone config with fallback URLs.
def megaunion_cmd_render(args: argparse.Namespace) -> int:
	config = megaunion_cmd_load_config(args)
	accounts = megaunion_accounts_plan(
		megaunion_accounts_load(config.accounts.file), config
	)
	blocks = [
		RemoteBlock(
			name=a.name,
			url=megaunion_readiness_fallback_url(config.readiness.fallback_host, a.port),
		)
		for a in accounts
	]
	sys.stdout.write(megaunion_rclone_render(blocks))
	return 0


# Function: megaunion_cmd_check ARGS
# Check the accounts file and the external tools.
def megaunion_cmd_check(args: argparse.Namespace) -> int:
	config = megaunion_cmd_load_config(args)
	problems = []

	try:
		credentials = megaunion_accounts_load(config.accounts.file)
		megaunion_util_log(
			"info", f"{config.accounts.file}: {len(credentials)} account(s)"
		)
		for cred in credentials:
			if not cred.user or not cred.password:
				megaunion_util_log("warn", f"[{cred.name}] user or pass is empty")
	except MegaunionError as e:
		problems.append(str(e))

	tools = [
		config.provision.login_cmd,
		config.provision.mkdir_cmd,
		config.provision.webdav_cmd,
		config.rclone.command,
	]
	for tool in tools:
		if shutil.which(tool):
			megaunion_util_log("debug", f"Found {tool}")
		else:
			problems.append(f"Command not found: {tool}")
	if not any(shutil.which(t) for t in ("fusermount", "fusermount3", "umount")):
		problems.append("Command not found: fusermount or umount")

	for problem in problems:
		megaunion_util_log("error", problem)
	if problems:
		return 1
	megaunion_util_log("info", "All checks passed")
	return 0


# Function: megaunion_cmd_unmount ARGS
# Unmount the configured mount point.
def megaunion_cmd_unmount(args: argparse.Namespace) -> int:
	config = megaunion_cmd_load_config(args)
	mount_point = getattr(args, "mount_point", None) or config.mount.mount_point
	megaunion_util_log("info", f"Unmounting {mount_point}...")
	if megaunion_mount_unmount(mount_point):
		megaunion_util_log("info", f"Unmounted {mount_point}")
		return 0
	return 1


# -----------------------------------------------------------------------------
#
# CLI
#
# -----------------------------------------------------------------------------


# Function: megaunion_CLI_build_parser
# Build argument parser with all subcommands.
def megaunion_CLI_build_parser() -> argparse.ArgumentParser:
	"""Build the argument parser."""
	parser = argparse.ArgumentParser(
		prog="megaunion",
		description="Merge MEGA accounts into one encrypted rclone mount.",
		formatter_class=argparse.RawDescriptionHelpFormatter,
	)

	# Global options
	parser.add_argument(
		"-V", "--version", action="version", version=f"megaunion {MEGAUNION_VERSION}"
	)
	parser.add_argument(
		"-c", "--config", metavar="FILE", help="Use specific config file"
	)
	parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
	parser.add_argument(
		"-q", "--quiet", action="store_true", help="Suppress non-error output"
	)
	parser.add_argument(
		"--no-color", action="store_true", help="Disable colored output"
	)
	parser.add_argument(
		"-n", "--dry-run", action="store_true", help="Show what would be done"
	)

	subparsers = parser.add_subparsers(dest="command", title="commands")

	# run command
	p_run = subparsers.add_parser("run", help="Set up and mount (default)")
	p_run.add_argument("--accounts", metavar="FILE", help="Accounts JSON file")
	p_run.add_argument("--mount-point", metavar="DIR", help="Mount point")
	p_run.add_argument(
		"--rclone-config", metavar="FILE", help="Generated rclone config file"
	)
	p_run.add_argument(
		"--base-port", type=int, metavar="PORT", help="First WebDAV port"
	)
	p_run.add_argument(
		"--max-parallel",
		type=int,
		metavar="N",
		help="Accounts provisioned at the same time",
	)
	p_run.add_argument(
		"--require-secrets",
		action="store_true",
		help="Refuse to use default crypt passwords",
	)
	p_run.add_argument(
		"--no-mount", action="store_true", help="Stop after creating the remotes"
	)
	p_run.add_argument(
		"--no-drop-privileges",
		action="store_true",
		help="Do not re-execute as PUID:PGID",
	)

	# plan command
	p_plan = subparsers.add_parser("plan", help="Show accounts, ports and folders")
	p_plan.add_argument("--accounts", metavar="FILE", help="Accounts JSON file")
	p_plan.add_argument(
		"--base-port", type=int, metavar="PORT", help="First WebDAV port"
	)
	p_plan.add_argument(
		"--format", choices=["text", "json"], default="text", help="Output format"
	)

	# render command
	p_render = subparsers.add_parser(
		"render", help="Print the account remotes with fallback URLs"
	)
	p_render.add_argument("--accounts", metavar="FILE", help="Accounts JSON file")
	p_render.add_argument(
		"--base-port", type=int, metavar="PORT", help="First WebDAV port"
	)

	# check command
	p_check = subparsers.add_parser("check", help="Check accounts file and tools")
	p_check.add_argument("--accounts", metavar="FILE", help="Accounts JSON file")

	# unmount command
	p_unmount = subparsers.add_parser("unmount", help="Unmount the encrypted union")
	p_unmount.add_argument("--mount-point", metavar="DIR", help="Mount point")

	return parser


# Function: megaunion_CLI_dispatch ARGS
# Dispatch to appropriate command handler.
def megaunion_CLI_dispatch(args: argparse.Namespace) -> int:
	"""Dispatch to the appropriate command handler."""
	commands = {
		"run": megaunion_cmd_run,
		"plan": megaunion_cmd_plan,
		"render": megaunion_cmd_render,
		"check": megaunion_cmd_check,
		"unmount": megaunion_cmd_unmount,
	}

	handler = commands.get(args.command or "run")
	if not handler:
		megaunion_util_log("error", f"Unknown command: {args.command}")
		return 1

	try:
		return handler(args)
	except MegaunionError as e:
		megaunion_util_log("error", str(e))
		return 1
	except KeyboardInterrupt:
		return 130


# -----------------------------------------------------------------------------
#
# MAIN
#
# -----------------------------------------------------------------------------


# Function: megaunion_main
# Main entry point.
def megaunion_main(argv: Optional[list[str]] = None) -> int:
	"""Main entry point."""
	global _verbose, _quiet, _no_color, _dry_run

	parser = megaunion_CLI_build_parser()
	args = parser.parse_args(argv)

	# Apply global options
	_verbose = args.verbose
	_quiet = args.quiet
	_no_color = args.no_color or MEGAUNION_NO_COLOR
	_dry_run = args.dry_run

	return megaunion_CLI_dispatch(args)


if __name__ == "__main__":
	sys.exit(megaunion_main())

# EOF
