import logging

import pytest

from stackscript.template.ast import expression_of
from stackscript.template.engine import ExecutedStatement, TemplateExecution, TemplateRunner
from stackscript.template.env import Environment, static_alias_resolver
from stackscript.template.errors import (
    CorruptRecordError,
    NoInverseActionError,
    TemplateExecutionError,
)
from stackscript.template.models import Action, inverse_action
from stackscript.template.parser import parse
from stackscript.template.revert import revert
from stackscript.template.values import RefValue, StringValue

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/000000000000/jobs"


def executed(text: str, result=None, error=None, **resolved) -> ExecutedStatement:
    """Creates an executed statement, with the literal params of the statement as resolved params."""
    (statement,) = parse(text).statements
    params = dict(expression_of(statement).params)
    params.update(resolved)
    return ExecutedStatement(statement, resolved_params=params, result=result, error=error)


def test_inverse_actions():
    assert inverse_action(Action.CREATE) == Action.DELETE
    assert inverse_action(Action.START) == Action.STOP
    assert inverse_action(Action.STOP) == Action.START
    assert inverse_action(Action.ATTACH) == Action.DETACH
    assert inverse_action(Action.DETACH) == Action.ATTACH
    for action in (Action.DELETE, Action.UPDATE, Action.CHECK, Action.NONE):
        assert inverse_action(action) is None


def test_create_is_reverted_with_its_result():
    execution = TemplateExecution(
        statements=[executed("create vpc cidr=10.0.0.0/24", result="vpc-123")]
    )
    result = revert(execution)
    assert str(result.template) == "delete vpc id=vpc-123"
    assert result.diagnostics == []


def test_reverse_order():
    execution = TemplateExecution(
        statements=[
            executed("vpcid = create vpc cidr=10.0.0.0/24", result="vpc-1"),
            executed(
                "subnetid = create subnet vpc=$vpcid cidr=10.0.1.0/24",
                result="subnet-2",
                vpc=StringValue("vpc-1"),
            ),
            executed(
                "create instance subnet=$subnetid image=ami-1",
                result="i-3",
                subnet=StringValue("subnet-2"),
            ),
            executed("stop instance id=i-3"),
        ]
    )
    assert revert(execution).template.render().splitlines() == [
        "start instance id=i-3",
        "delete instance id=i-3",
        "delete subnet id=subnet-2",
        "delete vpc id=vpc-1",
    ]


def test_only_successful_statements_are_reverted():
    execution = TemplateExecution(
        statements=[
            executed("create vpc cidr=10.0.0.0/24", result="vpc-1"),
            executed("create subnet vpc=vpc-1 cidr=10.0.1.0/24", error="quota exceeded"),
        ]
    )
    assert str(revert(execution).template) == "delete vpc id=vpc-1"


def test_statement_without_inverse_is_skipped(caplog):
    execution = TemplateExecution(
        statements=[
            executed("create vpc cidr=10.0.0.0/24", result="vpc-1"),
            executed("update subnet id=subnet-1 public=true"),
            executed("create subnet vpc=vpc-1 cidr=10.0.1.0/24", result="subnet-2"),
        ]
    )
    with caplog.at_level(logging.WARNING):
        result = revert(execution)

    assert str(result.template) == "delete subnet id=subnet-2\ndelete vpc id=vpc-1"
    assert len(result.diagnostics) == 1
    diagnostic = result.diagnostics[0]
    assert isinstance(diagnostic, NoInverseActionError)
    assert diagnostic.action == Action.UPDATE
    assert "update subnet" in caplog.text


def test_params_are_taken_from_the_record():
    execution = TemplateExecution(
        statements=[
            executed(
                "attach volume id={volume} instance=$instance device=/dev/sdh",
                id=StringValue("vol-1"),
                instance=StringValue("i-1"),
            )
        ]
    )
    assert str(revert(execution).template) == "detach volume id=vol-1 instance=i-1 device=/dev/sdh"


def test_entities_without_identifier_are_deleted_by_params():
    execution = TemplateExecution(
        statements=[
            executed("create tag resource=vpc-1 key=Name value=main"),
            executed("create route table=rtb-1 cidr=0.0.0.0/0 gateway=igw-1"),
        ]
    )
    assert revert(execution).template.render().splitlines() == [
        "delete route table=rtb-1 cidr=0.0.0.0/0 gateway=igw-1",
        "delete tag resource=vpc-1 key=Name value=main",
    ]


def test_unresolved_param_in_record_is_corrupt():
    execution = TemplateExecution(
        statements=[executed("start instance id=$instance", id=RefValue("instance"))]
    )
    with pytest.raises(CorruptRecordError):
        revert(execution)


@pytest.mark.parametrize("result", [None, ""])
def test_create_without_result_is_corrupt(result):
    execution = TemplateExecution(
        statements=[executed("create vpc cidr=10.0.0.0/24", result=result)]
    )
    with pytest.raises(CorruptRecordError):
        revert(execution)


def test_reverted_template_renders_to_valid_template():
    execution = TemplateExecution(
        statements=[
            executed("create vpc cidr=10.0.0.0/24", result="vpc-1"),
            executed("create queue name=jobs", result=QUEUE_URL),
            executed("attach internetgateway id=igw-1 vpc=vpc-1"),
        ]
    )
    result = revert(execution)
    assert parse(str(result.template)).statements == result.template.statements


def test_alias_values_render_to_the_same_template(registry):
    env = Environment(alias_resolver=static_alias_resolver({"gw": "10.0.0.1"}))
    template = parse("attach internetgateway id=igw-1 vpc=@gw")
    result = revert(TemplateRunner(registry).run(template, env))

    assert str(result.template) == "detach internetgateway id=igw-1 vpc=10.0.0.1"
    assert parse(str(result.template)).statements == result.template.statements


def test_revert_a_run(registry, fake_cloud):
    runner = TemplateRunner(registry)
    execution = runner.run(
        parse(
            "vpcid = create vpc cidr=10.0.0.0/24\n"
            "subnetid = create subnet vpc=$vpcid cidr=10.0.1.0/24\n"
            "attach routetable id=rtb-1 subnet=$subnetid\n"
        )
    )
    result = revert(execution)
    runner.run(result.template)

    assert fake_cloud.executed()[3:] == ["detach routetable", "delete subnet", "delete vpc"]
    assert [call["params"] for call in fake_cloud.calls[3:]] == [
        {"id": "rtb-1", "subnet": "subnet-2"},
        {"id": "subnet-2"},
        {"id": "vpc-1"},
    ]


def test_revert_a_partial_run(registry, fake_cloud):
    fake_cloud.fail("create", "subnet", RuntimeError("boom"))
    runner = TemplateRunner(registry)
    with pytest.raises(TemplateExecutionError) as e:
        runner.run(
            parse("vpcid = create vpc cidr=10.0.0.0/24\ncreate subnet vpc=$vpcid cidr=10.0.1.0/24")
        )

    result = revert(e.value.execution)
    assert str(result.template) == "delete vpc id=vpc-1"
