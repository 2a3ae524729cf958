"""Action inputs and scanner command construction."""
import shlex

from sca_action.options import ActionOptions, build_command, clean_collectors, scan_arguments


def test_clean_collectors_filters_unknown():
    assert clean_collectors([" Maven", "npm ", "", "bogus", "GO MOD"]) == ["maven", "npm", "go mod"]


def test_scan_arguments_default_path():
    assert scan_arguments(ActionOptions()) == ["."]


def test_scan_arguments_url_and_flags():
    opts = ActionOptions(
        url="https://github.com/org/repo",
        recursive=True,
        quick=True,
        allow_dirty=True,
        update_advisor=True,
        skip_vms=True,
        no_graphs=True,
        debug=True,
        skip_collectors=("gradle", "nope"),
        scan_collectors=("npm", "yarn"),
        create_issues=True,
    )
    assert scan_arguments(opts) == [
        "--url",
        "https://github.com/org/repo",
        "--recursive",
        "--quick",
        "--allow-dirty",
        "--update-advisor",
        "--skip-vms",
        "--no-graphs",
        "--debug",
        "--skip-collectors",
        "gradle",
        "--scan-collectors",
        "npm,yarn",
        "--json=scaResults.json",
    ]


def test_build_command_linux():
    cmd = build_command(ActionOptions(path="app", quick=True), "Linux")
    assert cmd == "curl -sSL https://download.sourceclear.com/ci.sh | sh -s -- scan app --quick"


def test_build_command_windows():
    cmd = build_command(ActionOptions(), "Windows")
    assert cmd.startswith("powershell -NoProfile -ExecutionPolicy Bypass")
    assert "ci.ps1 -s -- scan ." in cmd


def test_from_env_reads_inputs():
    env = {
        "INPUT_PATH": "src",
        "INPUT_QUICK": "true",
        "INPUT_CREATEISSUES": "false",
        "INPUT_BREAKBUILDONPOLICYFINDINGS": "TRUE",
        "INPUT_SKIP-COLLECTORS": "maven, gradle",
        "INPUT_GITHUB_TOKEN": "tok",
    }
    opts = ActionOptions.from_env(env)
    assert opts.path == "src"
    assert opts.quick is True
    assert opts.create_issues is False
    assert opts.break_build_on_policy_findings is True
    assert clean_collectors(opts.skip_collectors) == ["maven", "gradle"]
    assert opts.github_token == "tok"


def test_from_env_defaults():
    opts = ActionOptions.from_env({})
    assert opts == ActionOptions()


def test_multi_word_collectors_stay_one_argument():
    cmd = build_command(ActionOptions(skip_collectors=("go get", "npm")), "Linux")
    args = shlex.split(cmd.split("| ", 1)[1])
    assert args == ["sh", "-s", "--", "scan", ".", "--skip-collectors", "go get,npm"]


def test_shell_metacharacters_are_quoted():
    cmd = build_command(ActionOptions(path="my app; rm -rf ~"), "Linux")
    args = shlex.split(cmd.split("| ", 1)[1])
    assert args[4] == "my app; rm -rf ~"


def test_windows_arguments_are_single_quoted():
    opts = ActionOptions(url="https://example.com/o'r g", scan_collectors=("go mod",))
    cmd = build_command(opts, "Windows")
    assert "scan --url 'https://example.com/o''r g' --scan-collectors 'go mod'\"" in cmd
