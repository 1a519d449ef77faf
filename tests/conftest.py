from __future__ import annotations

import pathlib
import subprocess
from typing import Callable, List, Optional, Sequence

import pytest

import workstation_init as wi


class FakeRunner:
	"""Records commands and answers them from a scripted exit-status rule."""

	def __init__(self, log: wi.SetupLog, status: Optional[Callable[[List[str]], int]] = None, *, dry_run: bool = False) -> None:
		self.log = log
		self.dry_run = dry_run
		self.status = status or (lambda cmd: 0)
		self.commands: List[List[str]] = []
		self.probes: List[List[str]] = []
		self.stdin: List[Optional[str]] = []

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
		if probe:
			self.probes.append(cmd_list)
		else:
			self.commands.append(cmd_list)
			self.stdin.append(stdin_text)
			if self.dry_run:
				return None
		return subprocess.CompletedProcess(cmd_list, self.status(cmd_list))

	def installs(self) -> List[List[str]]:
		return [cmd for cmd in self.commands if "install" in cmd]


@pytest.fixture
def setup_log(tmp_path: pathlib.Path):
	log = wi.SetupLog(tmp_path / "setup.log")
	yield log
	log.close()


@pytest.fixture
def options() -> wi.ExecutionOptions:
	return wi.ExecutionOptions(dry_run=False, auto_confirm=True, timeout=0.1, use_menu=False)


@pytest.fixture
def paths(tmp_path: pathlib.Path) -> wi.PathsConfig:
	return wi.detect_default_paths(tmp_path / "home")


@pytest.fixture
def ubuntu() -> wi.HostInfo:
	return wi.HostInfo(distro=wi.Distro.UBUNTU, family=wi.Family.DEBIAN, manager=wi.APT)


@pytest.fixture
def fedora() -> wi.HostInfo:
	return wi.HostInfo(distro=wi.Distro.FEDORA, family=wi.Family.RPM, manager=wi.DNF)


def installed_rule(installed: Sequence[str], failing: Sequence[str] = ()) -> Callable[[List[str]], int]:
	"""Probes succeed only for ``installed``; installs fail only for ``failing``."""

	def status(cmd: List[str]) -> int:
		name = cmd[-1]
		if "install" in cmd:
			return 100 if name in failing else 0
		if cmd[:2] in (["dpkg", "-s"], ["rpm", "-q"], ["flatpak", "info"]):
			return 0 if name in installed else 1
		return 0

	return status
