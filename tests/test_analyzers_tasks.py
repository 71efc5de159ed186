"""Tests for the async task, thread-safety and scheduler analyzers."""

import pytest

from pmlint.analyzers.async_task import AsyncTaskAnalyzer
from pmlint.analyzers.scheduler import SchedulerAnalyzer
from pmlint.analyzers.thread_safety import ThreadSafetyAnalyzer
from pmlint.issues import Category, Severity

TASK_PATH = "src/test/plugin/Task.php"

ASYNC_HEADER = """\
<?php

declare(strict_types=1);

namespace test\\plugin;

use pocketmine\\scheduler\\AsyncTask;

"""

SCHEDULER_HEADER = """\
<?php

declare(strict_types=1);

namespace test\\plugin;

use pocketmine\\scheduler\\Task;

"""


def _codes(issues):
    return [issue.code for issue in issues]


def _task(body: str, header: str = ASYNC_HEADER, declaration: str = "class Task extends AsyncTask") -> dict:
    return {TASK_PATH: header + declaration + " {\n" + body + "}\n"}


# ===========================================================================
# AsyncTask
# ===========================================================================


class TestAsyncTaskAnalyzer:
    """AsyncTask subclasses."""

    def test_missing_onrun(self, make_plugin, run_analyzer):
        """A task without onRun() yields exactly one error."""
        root = make_plugin(files=_task(""))
        issues = run_analyzer(AsyncTaskAnalyzer, root)
        assert len(issues) == 1
        issue = issues[0]
        assert issue.code == "async_task_missing_onrun"
        assert issue.severity == Severity.ERROR
        assert issue.category == Category.ASYNC_TASK_MISUSE
        assert issue.line == 9

    def test_onrun_present(self, make_plugin, run_analyzer):
        """Adding a public onRun() removes the error."""
        root = make_plugin(files=_task("    public function onRun(): void {\n    }\n"))
        assert run_analyzer(AsyncTaskAnalyzer, root) == []

    def test_store_without_fetch(self, make_plugin, run_analyzer):
        """storeLocal() without fetchLocal() yields exactly one warning instead."""
        root = make_plugin(files=_task(
            "    public function __construct(object $data) {\n"
            "        $this->storeLocal('data', $data);\n"
            "    }\n"
            "    public function onRun(): void {\n"
            "    }\n"
        ))
        issues = run_analyzer(AsyncTaskAnalyzer, root)
        assert len(issues) == 1
        assert issues[0].code == "async_task_unfetched_data"
        assert issues[0].severity == Severity.WARNING

    def test_store_with_fetch(self, make_plugin, run_analyzer):
        """A matching fetchLocal() anywhere in the file is enough."""
        root = make_plugin(files=_task(
            "    public function __construct(object $data) {\n"
            "        $this->storeLocal('data', $data);\n"
            "    }\n"
            "    public function onRun(): void {\n"
            "    }\n"
            "    public function onCompletion(): void {\n"
            "        $data = $this->fetchLocal('data');\n"
            "    }\n"
        ))
        assert run_analyzer(AsyncTaskAnalyzer, root) == []

    def test_abstract_task_without_onrun(self, make_plugin, run_analyzer):
        """Abstract tasks may leave onRun() to subclasses."""
        root = make_plugin(files=_task("", declaration="abstract class Task extends AsyncTask"))
        assert run_analyzer(AsyncTaskAnalyzer, root) == []

    def test_visibility(self, make_plugin, run_analyzer):
        """onRun() and onCompletion() must be public."""
        root = make_plugin(files=_task(
            "    protected function onRun(): void {}\n"
            "    private function onCompletion(): void {}\n"
        ))
        assert _codes(run_analyzer(AsyncTaskAnalyzer, root)) == [
            "async_task_onrun_not_public",
            "async_task_oncompletion_not_public",
        ]

    def test_thread_unsafe_calls_in_onrun(self, make_plugin, run_analyzer):
        """Server and world access inside onRun() is an error; elsewhere it is not."""
        root = make_plugin(files=_task(
            "    public function onRun(): void {\n"
            "        $this->plugin->getServer()->broadcastMessage('x');\n"
            "    }\n"
            "    public function onCompletion(): void {\n"
            "        $this->plugin->getServer();\n"
            "    }\n"
        ))
        issues = run_analyzer(AsyncTaskAnalyzer, root)
        assert _codes(issues) == ["async_task_thread_unsafe"]
        assert issues[0].line == 11
        assert issues[0].category == Category.THREAD_SAFETY
        assert issues[0].column is not None


# ===========================================================================
# ThreadSafety
# ===========================================================================


class TestThreadSafetyAnalyzer:
    """Shared state in worker-thread code."""

    def test_shared_state_in_onrun(self, make_plugin, run_analyzer):
        """Superglobals, static variables and static properties are flagged in onRun()."""
        root = make_plugin(files=_task(
            "    private static array $cache = [];\n"
            "    public function onRun(): void {\n"
            "        $host = $_SERVER['HOSTNAME'];\n"
            "        static $count = 0;\n"
            "        self::$cache[] = $host;\n"
            "    }\n"
        ))
        issues = run_analyzer(ThreadSafetyAnalyzer, root)
        assert _codes(issues) == [
            "superglobal_in_async",
            "static_in_async",
            "static_property_in_async",
        ]
        assert [issue.line for issue in issues] == [12, 13, 14]
        assert all(issue.severity == Severity.ERROR for issue in issues)

    def test_constructor_is_checked(self, make_plugin, run_analyzer):
        """The constructor runs in the same restricted context."""
        root = make_plugin(files=_task(
            "    public function __construct() {\n"
            "        $env = $_ENV;\n"
            "    }\n"
            "    public function onRun(): void {}\n"
        ))
        assert _codes(run_analyzer(ThreadSafetyAnalyzer, root)) == ["superglobal_in_async"]

    def test_other_methods_ignored(self, make_plugin, run_analyzer):
        """Main-thread methods of a task are not restricted."""
        root = make_plugin(files=_task(
            "    public function onRun(): void {}\n"
            "    public function onCompletion(): void {\n"
            "        $host = $_SERVER['HOSTNAME'];\n"
            "    }\n"
        ))
        assert run_analyzer(ThreadSafetyAnalyzer, root) == []

    def test_global_keyword_anywhere(self, make_plugin, run_analyzer):
        """global statements are reported in any file."""
        root = make_plugin(files={
            "src/test/plugin/Helpers.php": (
                "<?php\nnamespace test\\plugin;\n"
                "function helper(): void {\n    global $config;\n}\n"
            ),
        })
        issues = run_analyzer(ThreadSafetyAnalyzer, root)
        assert _codes(issues) == ["global_keyword"]
        assert issues[0].severity == Severity.WARNING
        assert issues[0].line == 4


# ===========================================================================
# Scheduler
# ===========================================================================


def _scheduling_main(statement: str) -> dict:
    return {
        "src/test/plugin/Main.php": (
            "<?php\nnamespace test\\plugin;\nuse pocketmine\\plugin\\PluginBase;\n"
            "class Main extends PluginBase {\n"
            "    protected function onEnable(): void {\n"
            f"        {statement}\n"
            "    }\n"
            "}\n"
        ),
    }


class TestSchedulerAnalyzer:
    """Scheduler call sites and scheduled task classes."""

    @pytest.mark.parametrize(
        "statement,expected",
        [
            ("$this->getScheduler()->scheduleTask(new Tick());", []),
            ("$this->getScheduler()->scheduleDelayedTask(new Tick(), 20);", []),
            ("$this->getScheduler()->scheduleDelayedTask(new Tick(), -5);", ["negative_scheduler_delay"]),
            ("$this->getScheduler()->scheduleRepeatingTask(new Tick(), 0);", ["invalid_scheduler_period"]),
            ("$this->getScheduler()->scheduleRepeatingTask(new Tick(), 5);", ["short_scheduler_period"]),
            ("$this->getScheduler()->scheduleRepeatingTask(new Tick(), $period);", []),
            (
                "$this->getScheduler()->scheduleDelayedRepeatingTask(new Tick(), -1, 0);",
                ["negative_scheduler_delay", "invalid_scheduler_period"],
            ),
            ("$this->getServer()->getScheduler()->addTask(new Tick());", ["deprecated_scheduler_method"]),
        ],
    )
    def test_scheduler_calls(self, make_plugin, run_analyzer, statement, expected):
        """Literal delays and periods are checked against the scheduler contract."""
        root = make_plugin(files=_scheduling_main(statement))
        issues = run_analyzer(SchedulerAnalyzer, root)
        assert _codes(issues) == expected
        assert all(issue.line == 6 for issue in issues)

    def test_short_period_is_info(self, make_plugin, run_analyzer):
        """Short periods are only a hint to reconsider."""
        root = make_plugin(files=_scheduling_main(
            "$this->getScheduler()->scheduleRepeatingTask(new Tick(), 1);"
        ))
        assert run_analyzer(SchedulerAnalyzer, root)[0].severity == Severity.INFO

    def test_task_class_checks(self, make_plugin, run_analyzer):
        """Scheduled tasks need a public onRun() and must not override getHandler()."""
        root = make_plugin(files=_task(
            "    protected function onRun(): void {}\n"
            "    public function getHandler() { return null; }\n",
            header=SCHEDULER_HEADER,
            declaration="class Tick extends Task",
        ))
        issues = run_analyzer(SchedulerAnalyzer, root)
        assert _codes(issues) == ["task_onrun_not_public", "deprecated_task_gethandler"]
        assert issues[1].category == Category.DEPRECATED_API

    def test_task_missing_onrun(self, make_plugin, run_analyzer):
        """A concrete scheduled task without onRun() is an error."""
        root = make_plugin(files={
            "src/test/plugin/Tick.php": SCHEDULER_HEADER + "class Tick extends Task {\n}\n",
        })
        issues = run_analyzer(SchedulerAnalyzer, root)
        assert _codes(issues) == ["task_missing_onrun"]
        assert issues[0].category == Category.SCHEDULER_MISUSE
