#!/usr/bin/env python3

"""Menu-driven workstation setup for Ubuntu, Fedora and AlmaLinux.

The script detects the host distribution and then offers a handful of setup
actions: zsh with zplug, the Caskaydia Nerd Font, a few desktop packages, and
Flatpak applications from Flathub.  All real work is handed to apt, dnf,
rpm, dpkg or flatpak.  Python only decides what is still missing, asks once
per batch before installing, and records what happened in setup.log, which
is printed back at the end of the run."""

from __future__ import annotations

import argparse
import dataclasses
import datetime as _dt
import getpass
import io
import lzma
import os
import pathlib
import pwd
import select
import shlex
import shutil
import subprocess
import sys
import tarfile
import termios
import tty
import urllib.request
from typing import Callable, Iterable, List, Optional, Sequence


# -- simple-term-menu bootstrap -------------------------------------------------

def _ensure_simple_term_menu() -> None:
	"""Make sure TerminalMenu is importable.

	The main menu is drawn with simple-term-menu; without it the operator is
	told how to install it instead of getting a bare traceback."""

	try:  # Fast path when the package is already there.
		import simple_term_menu  # type: ignore  # noqa: F401
		return
	except ModuleNotFoundError:
		message = (
			"simple-term-menu is not installed. Install it with:\n"
			"  pip install simple-term-menu"
		)
		raise SystemExit(message)


_ensure_simple_term_menu()
from simple_term_menu import TerminalMenu  # type: ignore  # noqa: E402


# -- data definitions -----------------------------------------------------------


class Distro:
	UBUNTU = "ubuntu"
	FEDORA = "fedora"
	ALMALINUX = "almalinux"


SUPPORTED_DISTROS: Sequence[str] = (Distro.UBUNTU, Distro.FEDORA, Distro.ALMALINUX)


class Family:
	DEBIAN = "debian"
	RPM = "rpm"


FAMILY_BY_DISTRO = {
	Distro.UBUNTU: Family.DEBIAN,
	Distro.FEDORA: Family.RPM,
	Distro.ALMALINUX: Family.RPM,
}

ADDITIONAL_PACKAGES_BY_FAMILY = {
	Family.DEBIAN: (
		"caffeine",
		"gnome-shell-pomodoro",
	),
	Family.RPM: (
		"gnome-tweaks",
		"gnome-shell-extension-dash-to-dock",
		"gnome-shell-extension-appindicator",
		"gnome-shell-extension-caffeine",
		"gnome-pomodoro",
		"gnome-shell-extension-blur-my-shell",
	),
}

TERMINAL_PACKAGES: Sequence[str] = ("zsh", "curl", "git", "tar")

FLATPAK_PACKAGES: Sequence[str] = (
	"com.github.tchx84.Flatseal",
	"com.mattjakeman.ExtensionManager",
	"com.github.wwmm.easyeffects",
	"com.github.johnfactotum.Foliate",
	"org.videolan.VLC",
	"io.missioncenter.MissionCenter",
	"md.obsidian.Obsidian",
	"com.rafaelmardojai.Blanket",
)

# Only needed on Debian-family hosts; RPM hosts ship flatpak by default.
FLATPAK_BOOTSTRAP_PACKAGES: Sequence[str] = ("flatpak", "gnome-software-plugin-flatpak")

FLATHUB_REMOTE = "flathub"
FLATHUB_URL = "https://dl.flathub.org/repo/flathub.flatpakrepo"

ZPLUG_INSTALLER_URL = "https://raw.githubusercontent.com/zplug/installer/master/installer.zsh"

FONT_PACKAGE = "cascadia-mono-nf-fonts"
FONT_ARCHIVE_URL = "https://github.com/ryanoasis/nerd-fonts/releases/download/v3.4.0/CascadiaMono.tar.xz"

DEFAULT_LOG_FILE = pathlib.Path("setup.log")
DEFAULT_TIMEOUT = 10.0
DEFAULT_SHELL = "/usr/bin/zsh"

OS_RELEASE_PATHS: Sequence[pathlib.Path] = (
	pathlib.Path("/etc/os-release"),
	pathlib.Path("/usr/lib/os-release"),
)

HIGHLIGHT = "\033[0;33m"  # yellow
NC = "\033[0m"

ZSHRC_TEMPLATE = """\
# Set vim keybindings
bindkey -v

# History configuration
HISTSIZE=5000
SAVEHIST=5000
HISTFILE=~/.zsh_history
setopt histignorealldups sharehistory

# General aliases
alias ls='ls --color=auto'
alias ll='ls -lah --color=auto'
alias grep='grep --color=auto'
"""

ZSHRC_MARKER = "source ~/.zplug/init.zsh"

ZPLUG_BLOCK = f"""
# Zplug configuration
{ZSHRC_MARKER}
zplug "zsh-users/zsh-syntax-highlighting"
#zplug "zsh-users/zsh-autosuggestions"
zplug "zsh-users/zsh-history-substring-search"
zplug "romkatv/powerlevel10k", as:theme, depth:1


# Install plugins if missing
if ! zplug check; then
    zplug install
fi
zplug load
"""


class UnsupportedEnvironment(RuntimeError):
	"""The host cannot be provisioned by this script."""


class CommandError(RuntimeError):
	pass


@dataclasses.dataclass(slots=True)
class TaskDefinition:
	key: str
	title: str


RUN_ALL_KEY = "5"
QUIT_KEY = "q"

TASKS: Sequence[TaskDefinition] = (
	TaskDefinition("1", "💻 Terminal Setup (zsh, zplug)"),
	TaskDefinition("2", "✒️ Install Caskaydia NF Font"),
	TaskDefinition("3", "📦 Install Additional Packages"),
	TaskDefinition("4", "💿 Setup/Install Flatpak Packages"),
	TaskDefinition(RUN_ALL_KEY, "✨ Run All"),
	TaskDefinition(QUIT_KEY, "❌ Quit"),
)

RUN_ALL_ORDER: Sequence[str] = ("1", "2", "3", "4")


@dataclasses.dataclass(frozen=True, slots=True)
class PackageBackend:
	"""Command templates for one package system.

	The query and install templates are completed by appending a single
	package name.  ``refresh_cmd`` is empty for systems without a cache to
	refresh."""

	name: str
	query_cmd: Sequence[str]
	install_cmd: Sequence[str]
	refresh_cmd: Sequence[str] = ()
	sudo: bool = True

	def refresh(self, runner: CommandRunner) -> bool:
		if not self.refresh_cmd:
			return True
		return command_succeeded(runner.run(self.refresh_cmd, sudo=self.sudo))

	def is_installed(self, runner: CommandRunner, package: str) -> bool:
		proc = runner.run([*self.query_cmd, package], probe=True)
		return proc is not None and proc.returncode == 0

	def install(self, runner: CommandRunner, package: str) -> bool:
		return command_succeeded(runner.run([*self.install_cmd, package], sudo=self.sudo))


APT = PackageBackend(
	name="apt",
	query_cmd=("dpkg", "-s"),
	install_cmd=("apt", "install", "-y"),
	refresh_cmd=("apt", "update", "-y"),
)

DNF = PackageBackend(
	name="dnf",
	query_cmd=("rpm", "-q"),
	install_cmd=("dnf", "install", "-y"),
	refresh_cmd=("dnf", "makecache", "-y"),
)

FLATPAK = PackageBackend(
	name="flatpak",
	query_cmd=("flatpak", "info"),
	install_cmd=("flatpak", "install", "-y", FLATHUB_REMOTE),
	sudo=False,
)

PACKAGE_MANAGER_BY_FAMILY = {
	Family.DEBIAN: APT,
	Family.RPM: DNF,
}


@dataclasses.dataclass(frozen=True, slots=True)
class HostInfo:
	distro: str
	family: str
	manager: PackageBackend


@dataclasses.dataclass(slots=True)
class PathsConfig:
	home_dir: pathlib.Path
	zshrc: pathlib.Path
	zplug_dir: pathlib.Path
	font_dir: pathlib.Path


@dataclasses.dataclass(slots=True)
class ExecutionOptions:
	dry_run: bool
	auto_confirm: bool
	timeout: float
	use_menu: bool


@dataclasses.dataclass(slots=True)
class BatchResult:
	installed: List[str] = dataclasses.field(default_factory=list)
	failed: List[str] = dataclasses.field(default_factory=list)
	skipped: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True, slots=True)
class RunFlags:
	"""Facts the summary reports; each only ever goes from False to True."""

	reboot_required: bool = False
	shell_changed: bool = False

	def merge(self, other: RunFlags) -> RunFlags:
		return RunFlags(
			reboot_required=self.reboot_required or other.reboot_required,
			shell_changed=self.shell_changed or other.shell_changed,
		)


# -- logging and command execution ---------------------------------------------


class SetupLog:
	"""Append-only event log with one ``[HH:MM:SS] LEVEL: message`` line per event."""

	def __init__(self, path: pathlib.Path) -> None:
		self.path = path
		path.parent.mkdir(parents=True, exist_ok=True)
		self._handle = path.open("a", encoding="utf-8")

	def close(self) -> None:
		self._handle.close()

	def write(self, level: str, message: str) -> None:
		timestamp = _dt.datetime.now().strftime("%H:%M:%S")
		self._handle.write(f"[{timestamp}] {level}: {message}\n")
		self._handle.flush()

	def info(self, message: str) -> None:
		self.write("INFO", message)

	def success(self, message: str) -> None:
		self.write("SUCCESS", message)

	def warning(self, message: str) -> None:
		self.write("WARNING", message)

	def error(self, message: str) -> None:
		self.write("ERROR", message)

	def read(self) -> str:
		return self.path.read_text(encoding="utf-8", errors="replace")


class CommandRunner:
	"""Wrapper that logs and optionally executes shell commands.

	Probes are read-only queries (``dpkg -s``, ``rpm -q``, ``flatpak info``):
	they always run, even in dry-run mode, their output is discarded and they
	are not logged.  Everything else is logged as a CMD event and skipped in
	dry-run mode."""

	def __init__(self, *, log: SetupLog, dry_run: bool) -> None:
		self.log = log
		self.dry_run = dry_run

	def run(
		self,
		command: Sequence[str],
		*,
		sudo: bool = False,
		probe: bool = False,
		stdin_text: Optional[str] = None,
		check: bool = False,
	) -> subprocess.CompletedProcess[str] | None:
		cmd_list = list(command)
		if sudo and os.geteuid() != 0:
			cmd_list = ["sudo", "--"] + cmd_list
		joined = shlex.join(cmd_list)

		if self.dry_run and not probe:
			print(f"(dry-run) {joined}")
			self.log.write("CMD", f"{joined} (dry-run, not executed)")
			return None

		if not probe:
			self.log.write("CMD", joined)
		quiet = subprocess.DEVNULL if probe else None
		try:
			proc = subprocess.run(
				cmd_list,
				input=stdin_text,
				stdout=quiet,
				stderr=quiet,
				text=True,
				check=False,
			)
		except FileNotFoundError:
			proc = subprocess.CompletedProcess(cmd_list, 127)

		if not probe:
			self.log.write("CMD", f"exit_code={proc.returncode}")
		if check and proc.returncode != 0:
			raise CommandError(f"Command failed with exit code {proc.returncode}: {joined}")
		return proc


def command_succeeded(proc: subprocess.CompletedProcess[str] | None) -> bool:
	# None means the command was skipped by dry-run.
	return proc is None or proc.returncode == 0


def fetch_url(url: str, *, timeout: float = 30) -> Optional[bytes]:
	"""Download ``url`` over HTTPS, or return None after saying why not."""

	request = urllib.request.Request(url, headers={"User-Agent": "workstation-init/1.0"})
	try:
		with urllib.request.urlopen(request, timeout=timeout) as response:
			status = getattr(response, "status", response.getcode())
			if status != 200:
				print(f"Failed to download {url} (HTTP {status}).")
				return None
			final_url = response.geturl()
			if not final_url.startswith("https://"):
				print(f"Refusing to follow {url} to a non-HTTPS location: {final_url}")
				return None
			return response.read()
	except OSError as exc:
		print(f"Failed to download {url}: {exc}")
		return None


# -- host detection -------------------------------------------------------------


def read_os_release(path: Optional[pathlib.Path] = None) -> dict[str, str]:
	candidates = [path] if path else list(OS_RELEASE_PATHS)
	source = next((candidate for candidate in candidates if candidate.is_file()), None)
	if source is None:
		return {}

	data: dict[str, str] = {}
	for line in source.read_text(encoding="utf-8", errors="ignore").splitlines():
		line = line.strip()
		if not line or line.startswith("#") or "=" not in line:
			continue
		key, raw = line.split("=", 1)
		try:
			value = " ".join(shlex.split(raw))
		except ValueError:
			value = raw.strip("\"'")
		data[key.strip()] = value
	return data


def detect_distribution(os_release: Optional[pathlib.Path] = None) -> str:
	distro = read_os_release(os_release).get("ID", "")
	if distro not in SUPPORTED_DISTROS:
		raise UnsupportedEnvironment(
			f"Unsupported distribution: {distro or '<unknown>'}. "
			"Only Ubuntu, Fedora, and AlmaLinux are supported."
		)
	return distro


def check_not_wsl(environ: Optional[dict[str, str]] = None) -> None:
	environ = os.environ if environ is None else environ
	if environ.get("WSL_DISTRO_NAME"):
		raise UnsupportedEnvironment("This script is not intended for WSL environments")


def run_prechecks(log: SetupLog, os_release: Optional[pathlib.Path] = None) -> HostInfo:
	"""Fail fast, before anything is changed, on hosts we cannot handle."""

	print("🔍 Checking for WSL environment...")
	check_not_wsl()
	log.info("Not running in WSL.")

	print("🔍 Checking for supported distribution...")
	distro = detect_distribution(os_release)
	log.info(f"Supported distribution: {distro}.")

	family = FAMILY_BY_DISTRO[distro]
	return HostInfo(distro=distro, family=family, manager=PACKAGE_MANAGER_BY_FAMILY[family])


def refresh_package_cache(runner: CommandRunner, host: HostInfo) -> bool:
	print("📦 Updating package manager...")
	if host.manager.refresh(runner):
		runner.log.success("Updated system's packages cache")
		return True
	print("⚠️ Package cache refresh failed; continuing with the existing cache.")
	runner.log.warning(f"Package cache refresh failed ({shlex.join(host.manager.refresh_cmd)}).")
	return False


def detect_default_paths(home: Optional[pathlib.Path] = None) -> PathsConfig:
	home = home or pathlib.Path.home()
	return PathsConfig(
		home_dir=home,
		zshrc=home / ".zshrc",
		zplug_dir=home / ".zplug",
		font_dir=home / ".local" / "share" / "fonts" / "CascadiaMono",
	)


# -- terminal input -------------------------------------------------------------


def flush_input_buffer(stream=None) -> None:
	"""Discard keystrokes typed before the prompt was shown."""

	stream = stream or sys.stdin
	try:
		fd = stream.fileno()
	except (AttributeError, OSError, ValueError):
		return
	if os.isatty(fd):
		termios.tcflush(fd, termios.TCIFLUSH)


def read_key(timeout: float, stream=None) -> Optional[str]:
	"""Read one key press, or return None on timeout or end of input."""

	stream = stream or sys.stdin
	fd = stream.fileno()
	if not os.isatty(fd):
		ready, _, _ = select.select([stream], [], [], timeout)
		if not ready:
			return None
		return stream.read(1) or None

	saved = termios.tcgetattr(fd)
	try:
		# TCSANOW keeps a key pressed right after the prompt was printed.
		tty.setcbreak(fd, termios.TCSANOW)
		ready, _, _ = select.select([fd], [], [], timeout)
		if not ready:
			return None
		raw = os.read(fd, 1)
		if not raw:
			return None
		# A lone lead byte of a multi-byte key decodes to U+FFFD, which still declines.
		return raw.decode("utf-8", errors="replace")
	finally:
		termios.tcsetattr(fd, termios.TCSADRAIN, saved)


def prompt_timed_confirm(options: ExecutionOptions) -> bool:
	"""Ask whether to go ahead; no answer within the timeout means yes."""

	if options.auto_confirm:
		return True

	print(
		f"{HIGHLIGHT}Press 'y/Y' (or wait {options.timeout:g} seconds) to proceed with installation; "
		f"otherwise, press any other key to abort.{NC}"
	)
	flush_input_buffer()
	print("Proceed? (y/Y or wait): ", end="", flush=True)
	choice = read_key(options.timeout)
	print()
	return choice is None or choice in ("y", "Y")


# -- batch installation ---------------------------------------------------------


def install_batch(
	runner: CommandRunner,
	backend: PackageBackend,
	requested: Iterable[str],
	*,
	label: str,
	confirm: Callable[[], bool],
) -> BatchResult:
	"""Install whichever of ``requested`` is missing, after one confirmation.

	Each requested name lands in exactly one of ``installed``, ``failed`` or
	``skipped``.  Nothing is prompted when nothing is missing, a declined
	prompt installs nothing, and one failed install does not stop the rest.
	Installed state is queried afresh on every call."""

	names = list(dict.fromkeys(requested))
	result = BatchResult()
	if not names:
		runner.log.info(f"No {label} requested.")
		return result

	to_install: List[str] = []
	for name in names:
		if backend.is_installed(runner, name):
			result.skipped.append(name)
		else:
			to_install.append(name)

	if not to_install:
		print(f"✅ All specified {label} are already installed.")
		runner.log.info(f"All specified {label} are already installed.")
		return result

	print(f"The following {label} will be installed:")
	for name in to_install:
		print(f" - {name}")

	if not confirm():
		print(f"❌ Installation of {label} cancelled by user.")
		runner.log.info(f"The user skipped installing {label}: {' '.join(to_install)}")
		result.skipped.extend(to_install)
		return result

	for name in to_install:
		if backend.install(runner, name):
			result.installed.append(name)
		else:
			result.failed.append(name)

	if result.installed:
		runner.log.success(f"Successfully installed {label}: {' '.join(result.installed)}")
	if result.failed:
		runner.log.error(f"Failed to install {label}: {' '.join(result.failed)}")
	return result


# -- task implementations -------------------------------------------------------


def ensure_zshrc(runner: CommandRunner, options: ExecutionOptions, paths: PathsConfig) -> bool:
	if paths.zshrc.exists():
		return False
	if options.dry_run:
		print(f"(dry-run) Would create {paths.zshrc} with the baseline configuration.")
		return False
	paths.zshrc.parent.mkdir(parents=True, exist_ok=True)
	paths.zshrc.write_text(ZSHRC_TEMPLATE, encoding="utf-8")
	runner.log.success("Created zsh configuration")
	return True


def bootstrap_zplug(runner: CommandRunner, options: ExecutionOptions, paths: PathsConfig) -> bool:
	"""Install zplug with its upstream installer unless it is already there.

	Returns whether zplug is (or, in dry-run, would be) available.  A failed
	download or installer run is logged and reported, never raised."""

	if paths.zplug_dir.is_dir():
		runner.log.info("zplug is already installed.")
		return True

	print("🔌 Installing zplug...")
	if options.dry_run:
		print(f"(dry-run) Would fetch {ZPLUG_INSTALLER_URL} and run it with zsh.")
		return True

	script = fetch_url(ZPLUG_INSTALLER_URL)
	if script is None:
		runner.log.error("Failed to download the zplug installer")
		return False

	proc = runner.run(["zsh", "-s"], stdin_text=script.decode("utf-8", errors="replace"))
	if not command_succeeded(proc):
		runner.log.error(f"zplug installer exited with status {proc.returncode}")
		return False
	runner.log.success("Installed zplug")
	return True


def ensure_zplug_block(runner: CommandRunner, options: ExecutionOptions, paths: PathsConfig) -> bool:
	"""Append the zplug block unless the marker line is already present."""

	existing = paths.zshrc.read_text(encoding="utf-8", errors="ignore") if paths.zshrc.exists() else ""
	if ZSHRC_MARKER in existing:
		runner.log.info("zplug configuration already present in .zshrc.")
		return False

	print("📝 Adding zplug configuration to .zshrc...")
	if options.dry_run:
		print(f"(dry-run) Would append the zplug configuration to {paths.zshrc}.")
		return False
	with paths.zshrc.open("a", encoding="utf-8") as fh:
		if existing and not existing.endswith("\n"):
			fh.write("\n")
		fh.write(ZPLUG_BLOCK)
	runner.log.success("Added zplug configuration")
	return True


def current_login_shell(user: str) -> str:
	try:
		return pwd.getpwnam(user).pw_shell
	except KeyError:
		return os.environ.get("SHELL", "")


def ensure_login_shell(runner: CommandRunner, *, user: str, current_shell: str, target_shell: str) -> bool:
	"""Point the user's login shell at ``target_shell``.

	Returns True whenever the shells differed, so the summary can ask for a
	fresh login.  A failing chsh is logged but does not stop the run."""

	if current_shell and os.path.realpath(current_shell) == os.path.realpath(target_shell):
		runner.log.info("Default shell is already zsh.")
		return False

	print("🐚 Changing default shell to zsh...")
	proc = runner.run(["chsh", "-s", target_shell, user], sudo=True)
	if proc is None:
		runner.log.info(f"(dry-run) Default shell not changed to {target_shell}")
	elif proc.returncode == 0:
		runner.log.success(f"Changed default shell to {target_shell}")
	else:
		runner.log.error(f"Failed to change default shell for {user} to {target_shell}")
	return True


def task_terminal_setup(runner: CommandRunner, options: ExecutionOptions, paths: PathsConfig, host: HostInfo) -> RunFlags:
	print("⚙️ Setting up terminal...")
	install_batch(
		runner,
		host.manager,
		TERMINAL_PACKAGES,
		label="terminal packages",
		confirm=lambda: prompt_timed_confirm(options),
	)
	ensure_zshrc(runner, options, paths)
	bootstrap_zplug(runner, options, paths)
	ensure_zplug_block(runner, options, paths)

	user = getpass.getuser()
	changed = ensure_login_shell(
		runner,
		user=user,
		current_shell=current_login_shell(user),
		target_shell=shutil.which("zsh") or DEFAULT_SHELL,
	)
	return RunFlags(shell_changed=changed)


def install_font_archive(runner: CommandRunner, options: ExecutionOptions, font_dir: pathlib.Path, url: str = FONT_ARCHIVE_URL) -> bool:
	# No checksum is published alongside the release asset; HTTPS is the only check.
	if options.dry_run:
		print(f"(dry-run) Would download {url} into {font_dir} and refresh the font cache.")
		return True

	# Extraction filters are missing before 3.10.12 and 3.11.4.
	if not hasattr(tarfile, "data_filter"):
		print("This Python cannot extract archives safely; upgrade it or install the font by hand.")
		runner.log.error("tarfile extraction filters are unavailable on this Python")
		return False

	payload = fetch_url(url)
	if payload is None:
		return False

	font_dir.mkdir(parents=True, exist_ok=True)
	try:
		with tarfile.open(fileobj=io.BytesIO(payload), mode="r:xz") as archive:
			archive.extractall(font_dir, filter="data")
	except (tarfile.TarError, lzma.LZMAError, EOFError, OSError) as exc:
		print(f"Failed to extract {url}: {exc}")
		runner.log.error(f"Failed to extract font archive {url}: {exc}")
		return False

	if not command_succeeded(runner.run(["fc-cache", "-f"])):
		runner.log.warning("fc-cache failed; the font will show up after the next cache refresh.")
	return True


def task_install_font(runner: CommandRunner, options: ExecutionOptions, paths: PathsConfig, host: HostInfo) -> RunFlags:
	print("✒️ Installing Cascadia Code font...")
	if host.family == Family.RPM:
		installed = host.manager.install(runner, FONT_PACKAGE)
	else:
		installed = install_font_archive(runner, options, paths.font_dir)

	if installed and options.dry_run:
		runner.log.info("(dry-run) Cascadia Code font not installed")
	elif installed:
		runner.log.success("Installed Cascadia Code font")
	else:
		runner.log.error("Failed to install Cascadia Code font")
	return RunFlags()


def task_additional_packages(runner: CommandRunner, options: ExecutionOptions, paths: PathsConfig, host: HostInfo) -> RunFlags:
	print("🚀 Installing additional packages...")
	packages = ADDITIONAL_PACKAGES_BY_FAMILY.get(host.family, ())
	if not packages:
		runner.log.info(f"No additional packages specified for {host.distro}.")
		return RunFlags()

	install_batch(
		runner,
		host.manager,
		packages,
		label="additional packages",
		confirm=lambda: prompt_timed_confirm(options),
	)
	return RunFlags()


def ensure_flatpak_runtime(runner: CommandRunner, options: ExecutionOptions, host: HostInfo) -> bool:
	"""Install flatpak and register Flathub if flatpak is missing.

	Returns True when the runtime was absent, which means a reboot is needed
	before the freshly installed runtime is usable."""

	if shutil.which("flatpak"):
		return False

	print("🚀 Installing Flatpak...")
	runner.log.info("Flatpak not found, installing...")
	if host.family == Family.DEBIAN:
		install_batch(
			runner,
			host.manager,
			FLATPAK_BOOTSTRAP_PACKAGES,
			label="Flatpak runtime packages",
			confirm=lambda: prompt_timed_confirm(options),
		)

	runner.log.info("Adding Flathub repository...")
	proc = runner.run(["flatpak", "remote-add", "--if-not-exists", FLATHUB_REMOTE, FLATHUB_URL])
	if command_succeeded(proc):
		runner.log.success("Installed Flatpak and added Flathub repository")
	else:
		runner.log.error(f"Failed to add the {FLATHUB_REMOTE} repository")
	return True


def task_flatpaks(runner: CommandRunner, options: ExecutionOptions, paths: PathsConfig, host: HostInfo) -> RunFlags:
	reboot_required = ensure_flatpak_runtime(runner, options, host)

	print("🚀 Installing Flatpak packages...")
	install_batch(
		runner,
		FLATPAK,
		FLATPAK_PACKAGES,
		label="Flatpak packages",
		confirm=lambda: prompt_timed_confirm(options),
	)
	return RunFlags(reboot_required=reboot_required)


TASK_IMPLEMENTATIONS = {
	"1": task_terminal_setup,
	"2": task_install_font,
	"3": task_additional_packages,
	"4": task_flatpaks,
}


# -- menu -----------------------------------------------------------------------


def _run_menu(options: Sequence[str], *, title: str) -> Optional[int]:
	menu = TerminalMenu(options, title=title)
	return menu.show()


def read_menu_choice(options: ExecutionOptions) -> str:
	entries = [f"[{task.key}] {task.title}" for task in TASKS]
	flush_input_buffer()
	if options.use_menu:
		index = _run_menu(entries, title="Select an option:")
		return QUIT_KEY if index is None else TASKS[index].key

	print("\nSelect an option:")
	for task in TASKS:
		print(f"{task.key}) {task.title}")
	print()
	try:
		return input("Choice (1-5) or q to quit: ").strip()
	except EOFError:
		print()
		return QUIT_KEY


def run_menu(
	runner: CommandRunner,
	options: ExecutionOptions,
	paths: PathsConfig,
	host: HostInfo,
	*,
	read_choice: Optional[Callable[[], str]] = None,
) -> RunFlags:
	"""Dispatch menu selections until quit or until "Run All" has finished."""

	if read_choice is None:
		read_choice = lambda: read_menu_choice(options)  # noqa: E731

	flags = RunFlags()
	while True:
		choice = read_choice()
		if choice == QUIT_KEY:
			break
		if choice == RUN_ALL_KEY:
			for key in RUN_ALL_ORDER:
				flags = flags.merge(TASK_IMPLEMENTATIONS[key](runner, options, paths, host))
			break
		impl = TASK_IMPLEMENTATIONS.get(choice)
		if impl is None:
			continue
		flags = flags.merge(impl(runner, options, paths, host))
	return flags


def show_summary(log: SetupLog, flags: RunFlags) -> None:
	rule = "=" * 41
	print(rule)
	print("📝 Summary")

	if flags.reboot_required:
		print("⚠️ REBOOT REQUIRED - Flatpak was installed")
		print("   Please reboot and run this script again for Flatpak apps")

	if flags.shell_changed:
		print("🚪 Please log out and back in for zsh shell change to take effect")

	print(f"📋 Log file created at: {log.path}")
	print(rule)
	print(log.read(), end="")
	print(rule)


# -- argument parsing -----------------------------------------------------------


def _positive_seconds(value: str) -> float:
	try:
		seconds = float(value)
	except ValueError:
		raise argparse.ArgumentTypeError(f"not a number: {value!r}")
	if seconds <= 0:
		raise argparse.ArgumentTypeError("timeout must be greater than zero")
	return seconds


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
	parser = argparse.ArgumentParser(
		description="Workstation setup for Ubuntu, Fedora and AlmaLinux (zsh, fonts, packages, Flatpak)",
	)
	parser.add_argument(
		"--log-file",
		type=pathlib.Path,
		default=DEFAULT_LOG_FILE,
		help="Event log path (default: %(default)s).",
	)
	parser.add_argument(
		"--timeout",
		type=_positive_seconds,
		default=DEFAULT_TIMEOUT,
		help="Seconds to wait at confirmation prompts before proceeding (default: %(default)g).",
	)
	parser.add_argument("-y", "--yes", action="store_true", help="Assume yes for confirmation prompts.")
	parser.add_argument("--dry-run", action="store_true", help="Print and log commands without executing them.")
	parser.add_argument(
		"--no-menu",
		action="store_true",
		help="Read the menu choice from a plain prompt instead of the interactive menu.",
	)
	parser.add_argument(
		"--os-release",
		type=pathlib.Path,
		help="Read the distribution from this os-release file instead of /etc/os-release.",
	)
	return parser.parse_args(argv)


# -- core workflow -------------------------------------------------------------


def main(argv: Optional[Sequence[str]] = None) -> int:
	args = parse_args(argv)
	options = ExecutionOptions(
		dry_run=args.dry_run,
		auto_confirm=args.yes,
		timeout=args.timeout,
		use_menu=not args.no_menu,
	)

	log = SetupLog(args.log_file)
	runner = CommandRunner(log=log, dry_run=options.dry_run)
	try:
		print("=== 🪶 Minimal OS Setup Script ===")
		log.info(f"Setup started at {_dt.datetime.now().ctime()}")

		try:
			host = run_prechecks(log, args.os_release)
		except UnsupportedEnvironment as exc:
			print(f"❌ ERROR: {exc}")
			log.error(str(exc))
			return 1

		if options.dry_run:
			print("Dry-run mode: commands are logged but not executed.")
		refresh_package_cache(runner, host)

		try:
			flags = run_menu(runner, options, detect_default_paths(), host)
		except KeyboardInterrupt:
			print()
			log.warning("Setup interrupted by user.")
			return 130

		show_summary(log, flags)
	finally:
		log.close()
	return 0


if __name__ == "__main__":
	sys.exit(main())
