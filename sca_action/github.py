from __future__ import annotations

import logging
from pathlib import Path

import requests

from .context import CIContext

ISSUES_LOGO = "https://www.veracode.com/themes/veracode_new/library/img/veracode-black-hires.svg"
TEXT_LOGO = "https://www.veracode.com/sites/default/files/2022-04/logo_1.svg"
REQUEST_TIMEOUT = 30

logger = logging.getLogger(__name__)


def set_output(name: str, value: str, output_file: Path | None) -> bool:
    """Append ``name=value`` to the step output file (``$GITHUB_OUTPUT``)."""
    if output_file is None:
        logger.warning("GITHUB_OUTPUT is not set, output %s=%s not recorded", name, value)
        return False
    try:
        with open(output_file, "a", encoding="utf-8") as fh:
            fh.write(f"{name}={value}\n")
    except OSError as e:
        logger.error("Could not write output %s to %s: %s", name, output_file, e)
        return False
    return True


def issues_comment(exit_code: int | None) -> str:
    header = f"<br>![]({ISSUES_LOGO})<br>"
    return f"{header}Veracode SCA Scan finished with exit code: {exit_code}. Please review created and linked issues"


def details_comment(exit_code: int | None, output: str, scan_url: str | None = None) -> str:
    body = f"<br>![]({TEXT_LOGO})<br>"
    body += f"<pre>Veracode SCA Scan finished with exit code {exit_code}\n"
    if scan_url:
        body += f"Full Report Details: {scan_url}\n"
    body += "\n<details><summary>Veracode SCA Scan details</summary><p>\n"
    body += output
    body += "</p></details>\n</pre>"
    return body


def post_pr_comment(
    context: CIContext,
    token: str,
    body: str,
    *,
    session: requests.Session | None = None,
) -> bool:
    """Create a comment on the pull request this run belongs to.

    Failures (missing PR number, HTTP or network errors) are logged and
    reported as ``False``; they never abort the action.
    """
    if context.pr_number is None:
        logger.warning("No pull request number in event payload, skipping comment")
        return False
    try:
        owner, repo = context.owner_repo
    except ValueError as e:
        logger.warning("%s", e)
        return False

    url = f"{context.api_url.rstrip('/')}/repos/{owner}/{repo}/issues/{context.pr_number}/comments"
    headers = {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {token}",
    }
    try:
        if session is not None:
            resp = session.post(url, json={"body": body}, headers=headers, timeout=REQUEST_TIMEOUT)
        else:
            with requests.Session() as sess:
                resp = sess.post(url, json={"body": body}, headers=headers, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error("Adding comment to PR #%s failed: %s", context.pr_number, e)
        return False
    logger.info("Adding scan results as comment to PR #%s", context.pr_number)
    return True
