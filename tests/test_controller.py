from conftest import RecordingRunner, ScriptedClient, ScriptedPrompter, plan_reply
from shellagent.controller import Controller
from shellagent.tools.terminal import CommandResult

ECHO = {"description": "Say hi", "certainty": 0.9, "command": "echo hi"}


def test_declined_plan_is_cancelled(make_controller, client, runner):
    client.queue(plan_reply(ECHO))
    outcome = make_controller(ScriptedPrompter(confirms=[False])).run("say hi")
    assert outcome.status == "cancelled"
    assert outcome.records == []
    assert runner.commands == []


def test_happy_path(make_controller, client, runner):
    client.queue(plan_reply(
        {"description": "Check git", "certainty": 0.95, "command": "which git"},
        {"description": "Init repo", "certainty": 0.9, "command": "git init"},
    ))
    client.queue({"verified": True, "reason": "git found"})
    client.queue({"needsUpdate": False, "reason": "still valid"})
    client.queue({"verified": True, "reason": "repo initialised"})
    prompter = ScriptedPrompter(confirms=[True, True, True])

    outcome = make_controller(prompter).run("make a git repo")

    assert outcome.status == "completed"
    assert outcome.succeeded
    assert runner.commands == ["which git", "git init"]
    assert [r.step.command for r in outcome.records] == ["which git", "git init"]
    # the second step sees the first step's output as context
    assert "Step 1 Result: ran which git" in client.calls[3]["system"]


def test_duplicate_step_is_not_rerun(make_controller, client, runner):
    client.queue(plan_reply(ECHO, ECHO))
    client.queue({"verified": True, "reason": "printed"})
    client.queue({"needsUpdate": False, "reason": "fine"})
    prompter = ScriptedPrompter(confirms=[True, True])

    outcome = make_controller(prompter).run("say hi twice")

    assert runner.commands == ["echo hi"]
    assert len(outcome.records) == 2
    assert outcome.records[1].result == outcome.records[0].result
    assert outcome.succeeded


def test_failed_step_without_replan(cfg, console, client):
    runner = RecordingRunner({"make": CommandResult(success=False, exit_code=2, error="Command exited with code 2")})
    client.queue(plan_reply({"description": "Build", "certainty": 0.9, "command": "make"}))
    # execute plan, run command, no replan, do not continue
    prompter = ScriptedPrompter(confirms=[True, True, False, False])

    outcome = Controller(cfg, client, runner, prompter, console).run("build it")

    assert outcome.stopped_at == 0
    assert outcome.reason == "Step execution failed"
    assert outcome.records[0].verification.verified is False
    assert not outcome.succeeded
    # plan + nothing else: failed steps are not sent for verification
    assert len(client.calls) == 1


def test_adopted_replan_restarts_from_scratch(cfg, console):
    client = ScriptedClient([
        plan_reply(
            {"description": "Copy build", "certainty": 0.9, "command": "cp -r build out/"},
            {"description": "List output", "certainty": 0.9, "command": "ls out"},
        ),
        [{"description": "Create out and copy", "certainty": 0.9, "command": "mkdir -p out && cp -r build out/"}],
        {"verified": True, "reason": "copied"},
    ])
    runner = RecordingRunner({
        "cp -r build out/": CommandResult(success=False, exit_code=1, error="Command exited with code 1"),
    })
    prompter = ScriptedPrompter(confirms=[True, True, True, True, True])

    outcome = Controller(cfg, client, runner, prompter, console).run("copy the build to out")

    assert runner.commands == ["cp -r build out/", "mkdir -p out && cp -r build out/"]
    assert len(outcome.records) == 1
    assert outcome.records[0].step.command == "mkdir -p out && cp -r build out/"
    assert outcome.succeeded
    assert "Command exited with code 1" in client.calls[1]["user"]
    assert prompter.confirm_messages[2] == "Would you like to create a new plan from this point?"
    assert prompter.confirm_messages[3] == "Do you want to use this new plan?"


def test_revision_replaces_only_remaining_steps(make_controller, client, runner):
    client.queue(plan_reply(
        {"description": "Find project", "certainty": 0.9, "command": "ls"},
        {"description": "Install deps", "certainty": 0.9, "command": "npm install"},
        {"description": "Run tests", "certainty": 0.9, "command": "npm test"},
    ))
    client.queue({"verified": True, "reason": "found web/"})
    client.queue({
        "needsUpdate": True,
        "reason": "package.json is in web/",
        "updatedSteps": [{"description": "Install deps", "certainty": 0.9, "command": "cd web && npm install"}],
    })
    client.queue({"verified": True, "reason": "installed"})
    prompter = ScriptedPrompter(confirms=[True, True, True, True])

    outcome = make_controller(prompter).run("install and test")

    assert runner.commands == ["ls", "cd web && npm install"]
    assert [r.step.command for r in outcome.records] == ["ls", "cd web && npm install"]
    assert outcome.succeeded


def test_declined_revision_keeps_plan(make_controller, client, runner):
    client.queue(plan_reply(
        {"description": "Find project", "certainty": 0.9, "command": "ls"},
        {"description": "Install deps", "certainty": 0.9, "command": "npm install"},
    ))
    client.queue({"verified": True, "reason": "ok"})
    client.queue({"needsUpdate": True, "reason": "maybe", "updatedSteps": []})
    client.queue({"verified": True, "reason": "ok"})
    prompter = ScriptedPrompter(confirms=[True, True, False, True])

    make_controller(prompter).run("install")

    assert runner.commands == ["ls", "npm install"]


def test_unverified_step_stops_when_user_declines(make_controller, client, runner):
    client.queue(plan_reply(
        {"description": "List sources", "certainty": 0.9, "command": "ls src"},
        {"description": "Count lines", "certainty": 0.9, "command": "wc -l src/*"},
    ))
    client.queue({"verified": False, "reason": "src is empty"})
    prompter = ScriptedPrompter(confirms=[True, True, False])

    outcome = make_controller(prompter).run("count source lines")

    assert runner.commands == ["ls src"]
    assert outcome.stopped_at == 0
    assert outcome.reason == "src is empty"
    assert outcome.status == "completed"
    assert not outcome.succeeded


def test_abandoned_step_stops_the_run(cfg, console, runner):
    one = cfg.with_overrides(max_clarifications=1)
    client = ScriptedClient([
        plan_reply(
            {"description": "Deploy", "certainty": 0.3, "command": "./deploy.sh"},
            ECHO,
        ),
        "Which environment should be deployed?",
        {"description": "Deploy", "certainty": 0.4, "command": "./deploy.sh"},
    ])
    prompter = ScriptedPrompter(confirms=[True], answers=["no idea"])

    outcome = Controller(one, client, runner, prompter, console).run("deploy")

    assert runner.commands == []
    assert outcome.stopped_at == 0
    assert outcome.reason == "Clarification limit reached"
    assert outcome.records[0].result.abandoned
    assert outcome.records[0].verification.reason == "Clarification limit reached"


def test_prepare_plan_flags_placeholders(make_controller, client):
    client.queue(plan_reply(
        {"description": "Enter the project", "certainty": 0.9, "command": "cd example_project && ls"},
        {"description": "Clone the repository", "certainty": 0.95,
         "command": "git clone https://github.com/acme/app.git /path/to/repo"},
    ))

    plan = make_controller(ScriptedPrompter()).prepare_plan("clone and look around")

    kept, flagged = plan.steps
    assert kept.certainty == 0.9
    assert kept.placeholders == []
    assert flagged.certainty < 0.7
    assert flagged.certainty == 0.6
    assert "path/to/" in [m.pattern for m in flagged.placeholders]


def test_replan_after_clarified_failure_names_the_command_that_ran(cfg, console):
    client = ScriptedClient([
        plan_reply({"description": "Update repo", "certainty": 0.9, "command": "cd /path/to/repo && git pull"}),
        "Where is the repository?",
        {"description": "Update repo", "certainty": 0.95, "command": "cd ~/src/app && git pull"},
        [{"description": "Check the directory", "certainty": 0.9, "command": "ls ~/src/app"}],
    ])
    runner = RecordingRunner({
        "cd ~/src/app && git pull": CommandResult(
            success=False, exit_code=1, error="Command exited with code 1: not a git repo"),
    })
    # execute plan, run clarified command, ask for a new plan, reject it, stop
    prompter = ScriptedPrompter(confirms=[True, True, True, False, False], answers=["~/src/app"])

    outcome = Controller(cfg, client, runner, prompter, console).run("update my repo")

    replan_user = client.calls[3]["user"]
    assert "Failed command: cd ~/src/app && git pull" in replan_user
    assert "/path/to/repo" not in replan_user
    assert outcome.records[0].step.command == "cd ~/src/app && git pull"
    assert outcome.records[0].planned.command == "cd /path/to/repo && git pull"


def test_clarified_step_still_dedups_on_plan_entry(make_controller, client, runner):
    planned = {"description": "Open repo", "certainty": 0.9, "command": "cd /path/to/repo && git status"}
    client.queue(plan_reply(planned, planned))
    client.queue("Where is the repository?")
    client.queue({"description": "Open repo", "certainty": 0.95, "command": "cd ~/src/app && git status"})
    client.queue({"verified": True, "reason": "clean tree"})
    client.queue({"needsUpdate": False, "reason": "fine"})
    prompter = ScriptedPrompter(confirms=[True, True], answers=["~/src/app"])

    outcome = make_controller(prompter).run("show repo status twice")

    assert runner.commands == ["cd ~/src/app && git status"]
    assert [r.step.command for r in outcome.records] == ["cd ~/src/app && git status"] * 2


def test_clarified_step_is_verified_with_its_new_command(make_controller, client, runner):
    client.queue(plan_reply({"description": "Open repo", "certainty": 0.9, "command": "cd /path/to/repo && git status"}))
    client.queue("Where is the repository?")
    client.queue({"description": "Open repo", "certainty": 0.95, "command": "cd ~/src/app && git status"})
    client.queue({"verified": True, "reason": "clean tree"})
    prompter = ScriptedPrompter(confirms=[True, True], answers=["~/src/app"])

    outcome = make_controller(prompter).run("show repo status")

    assert runner.commands == ["cd ~/src/app && git status"]
    assert "Command: cd ~/src/app && git status" in client.calls[3]["system"]
    assert outcome.records[0].result.revised_step.clarified
