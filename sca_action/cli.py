from __future__ import annotations

import argparse
import dataclasses
import os
import sys
from pathlib import Path

from .action import run_action
from .context import CIContext
from .extract import SCA_OUTPUT_FILE, extract_scan_url
from .log import configure
from .options import ActionOptions


def _resolve_input_path(p: str) -> Path:
    return Path(p).expanduser().resolve()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sca_action",
        description="Agent-based SCA scan wrapper for CI: runs the scanner, extracts the report URL and publishes results.",
    )
    p.add_argument("--log-level", default=os.environ.get("SCA_ACTION_LOG_LEVEL", "INFO"), help="日志级别，默认 INFO")
    p.add_argument("--log-file", default=None, help="同时写入日志文件（按大小轮转）")
    sub = p.add_subparsers(dest="cmd", required=False)

    scan = sub.add_parser("scan", help="运行 SCA 扫描（参数默认从 INPUT_* 环境变量读取）")
    scan.add_argument("--path", default=None, help="待扫描项目路径")
    scan.add_argument("--url", default=None, help="扫描远程仓库 URL（优先于 --path）")
    scan.add_argument(
        "--results-dir",
        default=str((Path.cwd() / "results").resolve()),
        help="结果归档根目录，默认当前目录下 results/",
    )
    scan.add_argument("--workdir", default=None, help="扫描器工作目录，默认 GITHUB_WORKSPACE 或当前目录")
    scan.add_argument("--create-issues", action="store_true", default=None, help="输出 JSON 结果（scaResults.json）")
    scan.add_argument(
        "--break-build",
        dest="break_build_on_policy_findings",
        action="store_true",
        default=None,
        help="扫描非0退出时让任务失败",
    )
    scan.add_argument("--recursive", action="store_true", default=None)
    scan.add_argument("--quick", action="store_true", default=None)
    scan.add_argument("--debug", action="store_true", default=None)

    extract = sub.add_parser("extract", help="从已保存的扫描输出中提取报告 URL")
    extract.add_argument("file", help="扫描输出文本文件")
    extract.add_argument("--sidecar", default=SCA_OUTPUT_FILE, help=f"JSON 结果文件，默认 {SCA_OUTPUT_FILE}")

    return p


def _options_from_args(args: argparse.Namespace, environ: dict[str, str]) -> ActionOptions:
    opts = ActionOptions.from_env(environ)
    overrides = {
        name: getattr(args, name)
        for name in ("path", "url", "create_issues", "break_build_on_policy_findings", "recursive", "quick", "debug")
        if getattr(args, name) is not None
    }
    return dataclasses.replace(opts, **overrides)


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    args = parser.parse_args(list(argv))

    try:
        configure(level=args.log_level.upper(), log_file=args.log_file)
    except ValueError as e:
        parser.error(str(e))

    if args.cmd == "extract":
        text_path = _resolve_input_path(args.file)
        if not text_path.is_file():
            raise SystemExit(f"文件不存在: {text_path}")
        url = extract_scan_url(text_path.read_text(encoding="utf-8", errors="replace"), sidecar_path=args.sidecar)
        if not url:
            return 1
        print(url)
        return 0

    if args.cmd == "scan":
        environ = dict(os.environ)
        options = _options_from_args(args, environ)
        context = CIContext.from_env(environ)
        results_dir = _resolve_input_path(args.results_dir)
        results_dir.mkdir(parents=True, exist_ok=True)
        workdir = _resolve_input_path(args.workdir) if args.workdir else None

        res = run_action(options, context, results_dir=results_dir, workdir=workdir)
        if res.scan_url:
            print(f"scan-url: {res.scan_url}")
        for p in res.archived:
            print(f"- artifact: {p}")
        return 1 if res.failed else 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
