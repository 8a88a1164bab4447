from quill.engine.rules.base_models import Issue
from quill.engine.rules.decision import Decision


def _issue(attribute: str, message: str) -> Issue:
    severity = "sanity" if attribute.startswith("sanity") else "validation"
    return Issue(attribute=attribute, severity=severity, value=1, message=message)


def test_failure_records_where_it_was_made():
    d = Decision.fail("Nope")
    assert isinstance(d.traceback, str)
    assert "test_decision.py" in d.traceback


def test_traceback_can_be_skipped():
    d = Decision(success=False, traceback=False)
    assert d.traceback is None


def test_success_has_no_traceback_unless_asked():
    assert Decision(success=True).traceback is None
    assert "File " in Decision(success=True, traceback=True).traceback


def test_truthiness():
    assert Decision.OK
    assert not Decision.NO
    assert not Decision.fail("Nope", attribute="validationNotes.x")


def test_no_issues():
    d = Decision.from_issues([])
    assert d
    assert d.issues == ()
    assert not d.mutation_applied


def test_single_issue():
    d = Decision.from_issues(
        [_issue("validationNotes.featAllocation", "1 available vs. 2 allocated")],
        mutation_applied=True,
    )
    assert not d
    assert d.reason == "validationNotes.featAllocation: 1 available vs. 2 allocated"
    assert d.attribute == "validationNotes.featAllocation"
    assert d.mutation_applied


def test_several_issues():
    d = Decision.from_issues(
        [
            _issue("validationNotes.a", "Requires level >= 3"),
            _issue("sanityNotes.b", ""),
        ]
    )
    assert d.reason == "2 issues detected, including: Requires level >= 3"
    assert d.attribute == "validationNotes.a"
    # A note without text is reported by its attribute.
    assert d.issues == (
        "validationNotes.a: Requires level >= 3",
        "sanityNotes.b: sanityNotes.b",
    )
