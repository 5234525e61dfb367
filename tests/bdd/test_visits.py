from pytest_bdd import scenarios, given, when, then, parsers
from corretorcrm.cli.main import cli
from corretorcrm.models import Lead

scenarios("features/visits.feature")


@given("there are no visits")
def no_visits(store):
    store.list_visits.return_value = []


@given("a qualified lead exists for visits")
def lead_for_visits(store):
    store.get_lead.return_value = Lead(id="a1", name="Ana Souza", status="qualified")


@given("there is no such lead")
def no_such_lead(store):
    store.get_lead.return_value = None


@given("the visit exists")
def visit_exists(store):
    store.update_visit.return_value = True


@when("the agent lists visits")
def list_visits(runner, context):
    context["result"] = runner.invoke(cli, ["visits", "list"])


@when(parsers.parse('the agent books property "{property_id}" for "{when}"'))
def book_visit(runner, context, property_id, when):
    context["result"] = runner.invoke(cli, ["visits", "add", "a1", property_id, when])


@when(parsers.parse("the agent records score {score:d} for the visit"))
def record_feedback(runner, context, score):
    context["result"] = runner.invoke(cli, ["visits", "feedback", "v1", "--score", str(score)])


@then("the visit is noted in the lead's history")
def visit_noted(store):
    assert store.log_interaction.call_args[0][0].kind == "visit"


@then("the visit is marked done")
def visit_done(store):
    assert store.update_visit.call_args[0][1]["status"] == "done"
