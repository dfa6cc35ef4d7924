"""Tests for connectivity probes and the run report."""

from conftest import KubectlResponse

from crm_lab.probes import ALLOWED_PROBES, BLOCKED_PROBES, VERIFY_PROBES, run_probe, run_probes
from crm_lab.results import ProbeResult, RunReport, StepResult, StepStatus


def _by_name(probes, name):
    return next(p for p in probes if p.name == name)


def test_probe_catalogue_expectations():
    assert all(p.expect_reachable for p in ALLOWED_PROBES)
    assert not any(p.expect_reachable for p in BLOCKED_PROBES)
    assert all(p.expect_reachable for p in VERIFY_PROBES)
    assert [p.name for p in ALLOWED_PROBES] == ["external -> web", "web -> app", "app -> db"]
    assert [p.name for p in BLOCKED_PROBES] == ["external -> app", "external -> db", "web -> db"]


def test_run_probe_executes_in_source_pod(ready_pods):
    probe = _by_name(ALLOWED_PROBES, "web -> app")
    ready_pods.register("exec", KubectlResponse(stdout='{"status": "healthy"}'))

    result = run_probe(probe, timeout=5)

    assert result.reached is True
    assert result.matched
    exec_call = next(c for c in ready_pods.calls if c.command[0] == "exec")
    assert exec_call.command[:5] == ["exec", "-n", "crm-app", "crm-web-0", "--"]
    assert exec_call.command[5:] == list(probe.command)


def test_allowed_probe_failure_is_a_mismatch(ready_pods):
    probe = _by_name(ALLOWED_PROBES, "app -> db")
    ready_pods.register("exec", KubectlResponse(returncode=1, stderr="connection timed out"))

    result = run_probe(probe, timeout=5)

    assert result.reached is False
    assert not result.matched
    step = result.as_step()
    assert step.status is StepStatus.FAILED
    assert step.detail == "App tier cannot access DB tier"


def test_blocked_probe_failure_is_correctly_blocked(ready_pods):
    probe = _by_name(BLOCKED_PROBES, "web -> db")
    ready_pods.register("exec", KubectlResponse(returncode=2, stderr="psql: timeout"))

    result = run_probe(probe, timeout=5)

    assert result.matched
    assert result.as_step().status is StepStatus.OK
    assert "correctly blocked" in result.as_step().detail


def test_blocked_probe_success_is_reported_as_security_issue(ready_pods):
    probe = _by_name(BLOCKED_PROBES, "external -> db")
    ready_pods.register("exec", KubectlResponse(stdout=" ?column? \n----------\n        1\n"))

    result = run_probe(probe, timeout=5)

    assert result.reached is True
    assert not result.matched
    step = result.as_step()
    assert step.status is StepStatus.FAILED
    assert "security issue" in step.detail


def test_probe_without_source_pod_cannot_pass(kubectl):
    kubectl.register("get pod", KubectlResponse(stdout=""))
    probe = _by_name(BLOCKED_PROBES, "external -> app")

    result = run_probe(probe, timeout=5)

    assert result.reached is None
    assert not result.matched
    assert result.as_step().status is StepStatus.FAILED
    assert "exec" not in kubectl.verbs()


def test_run_probes_keeps_going_after_failures(ready_pods):
    ready_pods.register("exec", KubectlResponse(returncode=1, stderr="boom"))

    results = run_probes(ALLOWED_PROBES, timeout=5)

    assert len(results) == 3
    assert not any(r.matched for r in results)


def test_inverted_policy_is_detected_in_report(ready_pods):
    # Every exec succeeds: the blocked paths are open.
    ready_pods.register("exec", KubectlResponse(stdout="ok"))
    report = RunReport("demo")

    report.extend(run_probes(ALLOWED_PROBES, timeout=5))
    report.extend(run_probes(BLOCKED_PROBES, timeout=5))

    assert report.has_problems
    assert [r.name for r in report.problems] == ["external -> app", "external -> db", "web -> db"]


def test_report_ignores_skipped_steps():
    report = RunReport("x")
    report.add(StepResult("a", StepStatus.OK))
    report.add(StepResult("b", StepStatus.SKIPPED))

    assert not report.has_problems

    report.add(StepResult("c", StepStatus.TIMED_OUT, "timed out"))

    assert [r.name for r in report.problems] == ["c"]


def test_report_render_has_a_row_per_result():
    report = RunReport("Deployment summary")
    report.add(StepResult("web pods ready", StepStatus.OK))
    report.add(ProbeResult(BLOCKED_PROBES[0], False))

    table = report.render()

    assert table.row_count == 2
    assert table.title == "Deployment summary"
