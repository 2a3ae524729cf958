from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from typing import Iterable, Mapping

from .context import is_windows_runner
from .extract import SCA_OUTPUT_FILE

CI_SCRIPT_URL = "https://download.sourceclear.com/ci.sh"
CI_PS1_URL = "https://sca-downloads.veracode.com/ci.ps1"

COLLECTORS = (
    "maven",
    "gradle",
    "ant",
    "jar",
    "sbt",
    "glide",
    "go get",
    "go mod",
    "godep",
    "dep",
    "govendor",
    "trash",
    "pip",
    "pipenv",
    "bower",
    "yarn",
    "npm",
    "cocoapods",
    "gem",
    "composer",
    "makefile",
    "dll",
    "msbuilddotnet",
)

_TRUE = {"true", "1", "yes", "y", "on"}
_PS_SAFE = re.compile(r"[\w@%+=:,./-]+", re.ASCII)


def _as_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUE


def _as_list(value: str | None) -> tuple[str, ...]:
    return tuple(p for p in (value or "").split(",") if p.strip())


def clean_collectors(values: Iterable[str]) -> list[str]:
    """仅保留已知的 collector 名称（去空白、转小写）。"""
    allowed: list[str] = []
    for v in values:
        if not v:
            continue
        name = v.strip().lower()
        if name in COLLECTORS:
            allowed.append(name)
    return allowed


@dataclass(frozen=True)
class ActionOptions:
    path: str = "."
    url: str = ""
    recursive: bool = False
    quick: bool = False
    allow_dirty: bool = False
    update_advisor: bool = False
    skip_vms: bool = False
    no_graphs: bool = False
    debug: bool = False
    skip_collectors: tuple[str, ...] = ()
    scan_collectors: tuple[str, ...] = ()
    create_issues: bool = False
    break_build_on_policy_findings: bool = False
    github_token: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> ActionOptions:
        """Build options from GitHub Actions ``INPUT_*`` variables."""

        def inp(name: str, default: str = "") -> str:
            return environ.get(f"INPUT_{name.upper()}", default).strip()

        return cls(
            path=inp("path", ".") or ".",
            url=inp("url"),
            recursive=_as_bool(inp("recursive")),
            quick=_as_bool(inp("quick")),
            allow_dirty=_as_bool(inp("allowDirty")),
            update_advisor=_as_bool(inp("updateAdvisor")),
            skip_vms=_as_bool(inp("skip-vms")),
            no_graphs=_as_bool(inp("no-graphs")),
            debug=_as_bool(inp("debug")),
            skip_collectors=_as_list(inp("skip-collectors")),
            scan_collectors=_as_list(inp("scan-collectors")),
            create_issues=_as_bool(inp("createIssues")),
            break_build_on_policy_findings=_as_bool(inp("breakBuildOnPolicyFindings")),
            github_token=inp("github_token"),
        )


def scan_arguments(options: ActionOptions) -> list[str]:
    """Arguments passed to ``ci.sh scan`` / ``ci.ps1 scan``, in a fixed order."""
    args: list[str] = ["--url", options.url] if options.url else [options.path]
    flags = [
        (options.recursive, "--recursive"),
        (options.quick, "--quick"),
        (options.allow_dirty, "--allow-dirty"),
        (options.update_advisor, "--update-advisor"),
        (options.skip_vms, "--skip-vms"),
        (options.no_graphs, "--no-graphs"),
        (options.debug, "--debug"),
    ]
    args.extend(flag for enabled, flag in flags if enabled)

    skip = clean_collectors(options.skip_collectors)
    if skip:
        args.extend(["--skip-collectors", ",".join(skip)])
    scan = clean_collectors(options.scan_collectors)
    if scan:
        args.extend(["--scan-collectors", ",".join(scan)])

    if options.create_issues:
        args.append(f"--json={SCA_OUTPUT_FILE}")
    return args


def _ps_quote(arg: str) -> str:
    """PowerShell 单引号字面量；整条命令外层还有一层 cmd 双引号。"""
    if arg and _PS_SAFE.fullmatch(arg):
        return arg
    return "'" + arg.replace("'", "''").replace('"', '\\"') + "'"


def build_command(options: ActionOptions, runner_os: str | None) -> str:
    args = scan_arguments(options)
    if is_windows_runner(runner_os):
        scan_args = " ".join(_ps_quote(a) for a in args)
        return (
            'powershell -NoProfile -ExecutionPolicy Bypass -Command "'
            f"Invoke-WebRequest {CI_PS1_URL} -OutFile $env:TEMP\\ci.ps1; "
            f'& $env:TEMP\\ci.ps1 -s -- scan {scan_args}"'
        )
    scan_args = " ".join(shlex.quote(a) for a in args)
    return f"curl -sSL {CI_SCRIPT_URL} | sh -s -- scan {scan_args}"
