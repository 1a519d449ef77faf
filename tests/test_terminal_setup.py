from __future__ import annotations

import workstation_init as wi
from conftest import FakeRunner, installed_rule


def test_zshrc_created_once(setup_log, options, paths):
	runner = FakeRunner(setup_log)

	assert wi.ensure_zshrc(runner, options, paths) is True
	assert paths.zshrc.read_text(encoding="utf-8") == wi.ZSHRC_TEMPLATE

	paths.zshrc.write_text("# mine\n", encoding="utf-8")
	assert wi.ensure_zshrc(runner, options, paths) is False
	assert paths.zshrc.read_text(encoding="utf-8") == "# mine\n"


def test_zplug_block_appended_when_marker_missing(setup_log, options, paths):
	runner = FakeRunner(setup_log)
	paths.zshrc.parent.mkdir(parents=True)
	paths.zshrc.write_text("alias ll='ls -l'", encoding="utf-8")

	assert wi.ensure_zplug_block(runner, options, paths) is True

	content = paths.zshrc.read_text(encoding="utf-8")
	assert content.startswith("alias ll='ls -l'\n")
	assert content.count(wi.ZSHRC_MARKER) == 1
	assert 'zplug "romkatv/powerlevel10k", as:theme, depth:1' in content


def test_zplug_block_not_duplicated(setup_log, options, paths):
	runner = FakeRunner(setup_log)
	paths.zshrc.parent.mkdir(parents=True)
	paths.zshrc.write_text(wi.ZSHRC_TEMPLATE + wi.ZPLUG_BLOCK, encoding="utf-8")
	lines_before = len(paths.zshrc.read_text(encoding="utf-8").splitlines())

	assert wi.ensure_zplug_block(runner, options, paths) is False

	assert len(paths.zshrc.read_text(encoding="utf-8").splitlines()) == lines_before
	assert "zplug configuration already present in .zshrc." in setup_log.read()


def test_dry_run_leaves_zshrc_alone(setup_log, options, paths):
	options.dry_run = True
	runner = FakeRunner(setup_log, dry_run=True)

	assert wi.ensure_zshrc(runner, options, paths) is False
	assert wi.ensure_zplug_block(runner, options, paths) is False
	assert not paths.zshrc.exists()


def test_zplug_skipped_when_present(monkeypatch, setup_log, options, paths):
	def no_fetch(url, **kwargs):
		raise AssertionError(f"unexpected download of {url}")

	paths.zplug_dir.mkdir(parents=True)
	monkeypatch.setattr(wi, "fetch_url", no_fetch)
	runner = FakeRunner(setup_log)

	assert wi.bootstrap_zplug(runner, options, paths) is True
	assert runner.commands == []


def test_zplug_installer_piped_to_zsh(monkeypatch, setup_log, options, paths):
	monkeypatch.setattr(wi, "fetch_url", lambda url, **kw: b"echo installing zplug\n")
	runner = FakeRunner(setup_log)

	assert wi.bootstrap_zplug(runner, options, paths) is True
	assert runner.commands == [["zsh", "-s"]]
	assert runner.stdin == ["echo installing zplug\n"]
	assert "SUCCESS: Installed zplug" in setup_log.read()


def test_zplug_download_failure_is_not_fatal(monkeypatch, setup_log, options, paths):
	monkeypatch.setattr(wi, "fetch_url", lambda url, **kw: None)
	runner = FakeRunner(setup_log)

	assert wi.bootstrap_zplug(runner, options, paths) is False
	assert runner.commands == []
	assert "ERROR: Failed to download the zplug installer" in setup_log.read()


def test_zplug_installer_failure_is_logged(monkeypatch, setup_log, options, paths):
	monkeypatch.setattr(wi, "fetch_url", lambda url, **kw: b"exit 3\n")
	runner = FakeRunner(setup_log, lambda cmd: 3)

	assert wi.bootstrap_zplug(runner, options, paths) is False
	assert "ERROR: zplug installer exited with status 3" in setup_log.read()


def test_login_shell_unchanged_when_already_target(setup_log):
	runner = FakeRunner(setup_log)

	changed = wi.ensure_login_shell(runner, user="alice", current_shell="/usr/bin/zsh", target_shell="/usr/bin/zsh")

	assert changed is False
	assert runner.commands == []


def test_login_shell_changed(setup_log):
	runner = FakeRunner(setup_log)

	changed = wi.ensure_login_shell(runner, user="alice", current_shell="/bin/bash", target_shell="/usr/bin/zsh")

	assert changed is True
	assert runner.commands == [["chsh", "-s", "/usr/bin/zsh", "alice"]]
	assert "SUCCESS: Changed default shell to /usr/bin/zsh" in setup_log.read()


def test_login_shell_failure_still_flags_change(setup_log):
	runner = FakeRunner(setup_log, lambda cmd: 1)

	changed = wi.ensure_login_shell(runner, user="alice", current_shell="/bin/bash", target_shell="/usr/bin/zsh")

	assert changed is True
	assert "ERROR: Failed to change default shell for alice to /usr/bin/zsh" in setup_log.read()


def test_terminal_setup_end_to_end(monkeypatch, setup_log, options, paths, ubuntu):
	monkeypatch.setattr(wi, "fetch_url", lambda url, **kw: b"true\n")
	monkeypatch.setattr(wi.getpass, "getuser", lambda: "alice")
	monkeypatch.setattr(wi, "current_login_shell", lambda user: "/bin/bash")
	monkeypatch.setattr(wi.shutil, "which", lambda name: "/usr/bin/zsh")
	runner = FakeRunner(setup_log, installed_rule(["curl", "git", "tar"]))

	flags = wi.task_terminal_setup(runner, options, paths, ubuntu)

	assert flags == wi.RunFlags(shell_changed=True)
	assert runner.commands == [
		["apt", "install", "-y", "zsh"],
		["zsh", "-s"],
		["chsh", "-s", "/usr/bin/zsh", "alice"],
	]
	content = paths.zshrc.read_text(encoding="utf-8")
	assert content.startswith("# Set vim keybindings")
	assert content.count(wi.ZSHRC_MARKER) == 1


def test_zplug_block_appended_to_non_utf8_zshrc(setup_log, options, paths):
	runner = FakeRunner(setup_log)
	paths.zshrc.parent.mkdir(parents=True)
	paths.zshrc.write_bytes(b"# caf\xe9\nalias x=y\n")

	assert wi.ensure_zplug_block(runner, options, paths) is True

	content = paths.zshrc.read_bytes()
	assert content.startswith(b"# caf\xe9\nalias x=y\n")
	assert content.count(wi.ZSHRC_MARKER.encode()) == 1


def test_marker_found_in_non_utf8_zshrc(setup_log, options, paths):
	runner = FakeRunner(setup_log)
	paths.zshrc.parent.mkdir(parents=True)
	original = b"# \xff\xfe latin-1 junk\n" + wi.ZPLUG_BLOCK.encode()
	paths.zshrc.write_bytes(original)

	assert wi.ensure_zplug_block(runner, options, paths) is False
	assert paths.zshrc.read_bytes() == original


def test_dry_run_login_shell_is_not_reported_as_changed(setup_log):
	runner = FakeRunner(setup_log, dry_run=True)

	changed = wi.ensure_login_shell(runner, user="alice", current_shell="/bin/bash", target_shell="/usr/bin/zsh")

	assert changed is True
	log_text = setup_log.read()
	assert "SUCCESS" not in log_text
	assert "INFO: (dry-run) Default shell not changed to /usr/bin/zsh" in log_text
