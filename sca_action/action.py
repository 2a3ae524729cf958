from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import requests

from .artifacts import archive_results
from .context import CIContext
from .extract import SCA_OUTPUT_FILE, extract_scan_url, report_context
from .github import details_comment, issues_comment, post_pr_comment, set_output
from .invoke import BLOCKING, SCA_RESULT_FILE, STREAMING, InvokeResult, invoke
from .options import ActionOptions, build_command

SCAN_URL_OUTPUT = "scan-url"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionResult:
    invoke: InvokeResult | None
    scan_url: str | None
    failed: bool
    summary: str
    archived: tuple[Path, ...] = ()


def _log_stdout(chunk: str) -> None:
    logger.info("%s", chunk.rstrip("\n"))


def _log_stderr(chunk: str) -> None:
    logger.error("stderr: %s", chunk.rstrip("\n"))


def _retry_from_result_file(result: InvokeResult, sidecar: Path) -> str | None:
    """结果文件比内存中的输出更长时，再从文件内容提取一次。

    只读取本次运行成功写入的文件；写入失败时磁盘上可能是上一次的旧结果。
    """
    if result.result_path is None:
        return None
    captured = result.combined
    try:
        content = result.result_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    if len(content) <= len(captured):
        return None
    logger.debug("Using result file content for URL extraction (file is larger than captured output)")
    return extract_scan_url(content, sidecar_path=sidecar)


def _is_failed(options: ActionOptions, result: InvokeResult, *, windows: bool) -> bool:
    # 未能启动或被信号杀死（负数退出码）：扫描没有完成
    if result.exit_code is None or result.exit_code < 0:
        return True
    if result.exit_code == 0:
        return False
    # Linux/macOS 的 issues 模式非0即失败；其余情况只在开启 breakBuildOnPolicyFindings 时失败
    if options.create_issues and not windows:
        return True
    return options.break_build_on_policy_findings


def run_action(
    options: ActionOptions,
    context: CIContext,
    *,
    results_dir: Path,
    workdir: Path | None = None,
    session: requests.Session | None = None,
) -> ActionResult:
    """Run one scan end to end.

    Invokes the scanner, publishes the ``scan-url`` output, archives result
    files, decorates the pull request and applies the pass/fail policy.
    """
    workdir = (workdir or context.workspace or Path.cwd()).resolve()
    sidecar = workdir / SCA_OUTPUT_FILE
    result_file = workdir / SCA_RESULT_FILE

    try:
        command = build_command(options, context.runner_os)
        logger.info("Command to run: %s", command)

        result = invoke(
            command,
            BLOCKING if context.is_windows else STREAMING,
            result_file=None if options.create_issues else result_file,
            on_stdout=None if options.create_issues else _log_stdout,
            on_stderr=_log_stderr,
            cwd=workdir,
        )
        if options.debug and options.create_issues:
            logger.info("%s", result.stdout)
        if result.error:
            logger.error("Scanner invocation error: %s", result.error)

        logger.info(
            "Attempting to extract scan URL from combined output (stdout: %d chars, stderr: %d chars)",
            len(result.stdout),
            len(result.stderr),
        )
        scan_url = extract_scan_url(result.combined, sidecar_path=sidecar)
        if not scan_url and not options.create_issues:
            scan_url = _retry_from_result_file(result, sidecar)

        if scan_url:
            set_output(SCAN_URL_OUTPUT, scan_url, context.output_file)
            logger.info("Scan URL extracted: %s", scan_url)
        else:
            logger.warning("Scan URL not found in output")
            sample = report_context(result.combined)
            if sample is not None:
                logger.info('Sample output around "Full Report": %s', sample)
            else:
                logger.info('"Full Report" text not found in combined output')

        artifact = sidecar if options.create_issues else result_file
        archived = archive_results([artifact], results_dir, root=workdir)

        if context.is_pull_request:
            logger.info("This run is part of a PR, adding a PR comment")
            if options.create_issues:
                body = issues_comment(result.exit_code)
            else:
                body = details_comment(result.exit_code, result.stdout, scan_url)
            post_pr_comment(context, options.github_token, body, session=session)

        failed = _is_failed(options, result, windows=context.is_windows)
        if failed:
            summary = f"Veracode SCA Scan failed with exit code {result.exit_code}"
            logger.error(summary)
        else:
            summary = f"Veracode SCA Scan finished with exit code {result.exit_code}"
            logger.info(summary)

        logger.info("Finish command")
        return ActionResult(
            invoke=result,
            scan_url=scan_url,
            failed=failed,
            summary=summary,
            archived=tuple(archived),
        )
    except Exception as e:
        logger.exception("Running scan failed.")
        return ActionResult(invoke=None, scan_url=None, failed=True, summary=str(e))
